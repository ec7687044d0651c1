"""Configuration module - loads settings from .env file."""

import logging
import os
import sys

from dotenv import load_dotenv

# .env is optional: every setting has a default suitable for a dev machine
load_dotenv()

logger = logging.getLogger(__name__)


def _parse_bool(value: str | None) -> bool:
    """Parse string to bool; default False for missing/invalid."""
    if not value:
        return False
    return value.strip().lower() in ("true", "1", "yes", "on")


def _parse_int(value: str | None, default: int) -> int:
    """Parse decimal or 0x-prefixed integer; log and fall back on garbage."""
    if not value or not value.strip():
        return default
    try:
        return int(value.strip(), 0)
    except ValueError:
        logger.warning("Invalid integer in .env: %r, using %s", value, default)
        return default


def _default_scratch_dir() -> str:
    # Windows per-user temp paths may contain Cyrillic user names
    if sys.platform == "win32":
        return "C:\\Temp"
    return "/tmp/thermal-receipts"


# HTTP service
HOST: str = os.getenv("HOST", "127.0.0.1").strip()
PORT: int = _parse_int(os.getenv("PORT"), 3001)
LOG_DIR: str = os.getenv("LOG_DIR", "logs").strip()

# Primary device (python-escpos)
MOCK_PRINTER: bool = _parse_bool(os.getenv("MOCK_PRINTER", "false"))
# auto | usb | file | serial | network
PRINTER_CONNECTION: str = os.getenv("PRINTER_CONNECTION", "auto").strip().lower()
# H-58C defaults (STMicroelectronics VID, H-58C PID)
USB_VENDOR_ID: int = _parse_int(os.getenv("USB_VENDOR_ID"), 0x0483)
USB_PRODUCT_ID: int = _parse_int(os.getenv("USB_PRODUCT_ID"), 0x070B)
PRINTER_DEVFILE: str = os.getenv("PRINTER_DEVFILE", "/dev/usb/lp0").strip()
SERIAL_PORT: str = os.getenv("SERIAL_PORT", "/dev/serial0").strip()
BAUDRATE: int = _parse_int(os.getenv("BAUDRATE"), 9600)
SERIAL_BYTESIZE: int = _parse_int(os.getenv("SERIAL_BYTESIZE"), 8)
SERIAL_PARITY: str = os.getenv("SERIAL_PARITY", "N").strip().upper()
SERIAL_STOPBITS: int = _parse_int(os.getenv("SERIAL_STOPBITS"), 1)
SERIAL_TIMEOUT: float = float(os.getenv("SERIAL_TIMEOUT", "1.0").strip())
SERIAL_DSRDTR: bool = _parse_bool(os.getenv("SERIAL_DSRDTR", "true"))
NETWORK_HOST: str = os.getenv("NETWORK_HOST", "").strip()
NETWORK_PORT: int = _parse_int(os.getenv("NETWORK_PORT"), 9100)
# python-escpos capability profile name; empty means the library default
PRINTER_PROFILE: str | None = os.getenv("PRINTER_PROFILE", "").strip() or None
# ESC t <n> sent on reset; negative disables it
CODEPAGE_ID: int = _parse_int(os.getenv("CODEPAGE_ID"), -1)
DEVICE_COMMIT_TIMEOUT: float = float(os.getenv("DEVICE_COMMIT_TIMEOUT", "5.0").strip())

# Receipt layout (58mm paper, Font A)
LINE_WIDTH: int = _parse_int(os.getenv("LINE_WIDTH"), 32)
CURRENCY_SUFFIX: str = os.getenv("CURRENCY_SUFFIX", "UZS").strip()
DEFAULT_UNIT_LABEL: str = os.getenv("DEFAULT_UNIT_LABEL", "шт").strip()
FOOTER_TEXT: str = os.getenv("FOOTER_TEXT", "Спасибо за покупку!").strip()

# OS-level fallback delivery
SYSTEM_PRINTER_NAME: str = os.getenv("SYSTEM_PRINTER_NAME", "").strip()
SYSTEM_PRINT_TIMEOUT: float = float(os.getenv("SYSTEM_PRINT_TIMEOUT", "15.0").strip())
SYSTEM_PRINTER_ENCODING: str = os.getenv("SYSTEM_PRINTER_ENCODING", "utf-8").strip()
SCRATCH_DIR: str = os.getenv("SCRATCH_DIR", "").strip() or _default_scratch_dir()
