"""Fallback delivery through the operating system's printing stack.

Used when the ESC/POS device commit fails. The plain-text receipt is written to
a request-unique scratch file and handed to the OS by two mechanisms, always
in this order:

1. raw spooler bypass: the bytes go to the print queue as an opaque RAW job
   (``win32print`` on Windows, ``lp -o raw`` on CUPS), because many receipt
   printer drivers reject jobs formatted for graphical printing;
2. print-queue command: the platform's normal submission utility
   (``Out-Printer`` on Windows, ``lp`` with compact page options on CUPS).

The scratch file is removed on every exit path.
"""

import asyncio
import logging
import os
import subprocess
import sys
import tempfile
import uuid
from pathlib import Path
from typing import Callable, Iterable, List, Tuple

import config
from errors import SystemPrinterError

logger = logging.getLogger(__name__)

RAW = "raw"
QUEUE = "queue"

# Substrings identifying a receipt printer among installed printers
THERMAL_KEYWORDS = ("usb", "pos", "thermal", "h-58", "receipt")

# lp options that make general-purpose CUPS output fit 58mm paper
COMPACT_LP_OPTIONS = (
    "-o", "cpi=17",
    "-o", "lpi=8",
    "-o", "page-left=0",
    "-o", "page-right=0",
    "-o", "page-top=0",
    "-o", "page-bottom=0",
)

Mechanism = Callable[[Path, "str | None"], None]


def pick_thermal_printer(names: Iterable[str]) -> str | None:
    """Return the first printer name that looks like a receipt printer."""
    for name in names:
        lowered = name.lower()
        if any(keyword in lowered for keyword in THERMAL_KEYWORDS):
            return name
    return None


def _run(args: List[str], env: dict[str, str] | None = None) -> subprocess.CompletedProcess:
    """Run a print command; non-zero exit raises ``CalledProcessError``."""
    try:
        return subprocess.run(
            args,
            capture_output=True,
            text=True,
            timeout=config.SYSTEM_PRINT_TIMEOUT,
            check=True,
            env=env,
        )
    except subprocess.CalledProcessError as e:
        detail = (e.stderr or e.stdout or "").strip()
        raise RuntimeError(f"{args[0]} exited with {e.returncode}: {detail}") from e


class SystemSpooler:
    """OS print-queue delivery with a cached target printer name."""

    def __init__(self, platform: str | None = None) -> None:
        self.platform = platform or sys.platform
        self._printer_name: str | None = None
        self._detected = False

    @property
    def is_windows(self) -> bool:
        return self.platform == "win32"

    # --- printer detection ---
    def _list_windows_printers(self) -> List[str]:
        import win32print  # type: ignore

        flags = win32print.PRINTER_ENUM_LOCAL | win32print.PRINTER_ENUM_CONNECTIONS
        return [info[2] for info in win32print.EnumPrinters(flags)]

    def _list_cups_printers(self) -> List[str]:
        # "<name> accepting requests since ..."
        result = _run(["lpstat", "-a"])
        return [line.split()[0] for line in result.stdout.splitlines() if line.strip()]

    def detect_printer_name(self) -> str | None:
        """Resolve the target printer once; later calls return the cached name.

        ``None`` means the system default printer.
        """
        if self._detected:
            return self._printer_name

        if config.SYSTEM_PRINTER_NAME:
            name: str | None = config.SYSTEM_PRINTER_NAME
        else:
            try:
                names = (
                    self._list_windows_printers()
                    if self.is_windows
                    else self._list_cups_printers()
                )
            except Exception as e:
                logger.warning("Could not list system printers: %s", e)
                names = []
            logger.info("Available system printers: %s", ", ".join(names) or "none")
            name = pick_thermal_printer(names)

        if name:
            logger.info("System printer selected: %s", name)
        else:
            logger.warning("No thermal printer detected, will use default printer")
        self._printer_name = name
        self._detected = True
        return name

    # --- scratch files ---
    def scratch_dir(self) -> Path:
        """ASCII-safe directory for transient receipt files, created on demand."""
        if self.is_windows:
            path = Path(config.SCRATCH_DIR)
        else:
            tmp = tempfile.gettempdir()
            path = Path(tmp) if tmp.isascii() else Path(config.SCRATCH_DIR)
        path.mkdir(parents=True, exist_ok=True)
        return path

    # --- delivery mechanisms ---
    def _windows_raw(self, path: Path, printer_name: str | None) -> None:
        import win32print  # type: ignore

        name = printer_name or win32print.GetDefaultPrinter()
        data = path.read_bytes()
        handle = win32print.OpenPrinter(name)
        try:
            win32print.StartDocPrinter(handle, 1, ("Thermal Receipt", None, "RAW"))
            try:
                win32print.StartPagePrinter(handle)
                win32print.WritePrinter(handle, data)
                win32print.EndPagePrinter(handle)
            finally:
                win32print.EndDocPrinter(handle)
        finally:
            win32print.ClosePrinter(handle)

    def _windows_queue(self, path: Path, printer_name: str | None) -> None:
        # Paths and names travel through the environment, not the command line
        script = (
            "[System.IO.File]::ReadAllText($env:RECEIPT_FILE, "
            "[System.Text.Encoding]::GetEncoding($env:RECEIPT_ENCODING)) | Out-Printer"
        )
        if printer_name:
            script += " -Name $env:RECEIPT_PRINTER"
        env = dict(
            os.environ,
            RECEIPT_FILE=str(path),
            RECEIPT_ENCODING=config.SYSTEM_PRINTER_ENCODING,
            RECEIPT_PRINTER=printer_name or "",
        )
        _run(
            [
                "powershell",
                "-NoProfile",
                "-NonInteractive",
                "-ExecutionPolicy",
                "Bypass",
                "-Command",
                script,
            ],
            env=env,
        )

    def _lp_command(self, printer_name: str | None, *options: str) -> List[str]:
        args = ["lp"]
        if printer_name:
            args += ["-d", printer_name]
        args += list(options)
        return args

    def _cups_raw(self, path: Path, printer_name: str | None) -> None:
        _run(self._lp_command(printer_name, "-o", "raw", str(path)))

    def _cups_queue(self, path: Path, printer_name: str | None) -> None:
        _run(self._lp_command(printer_name, *COMPACT_LP_OPTIONS, str(path)))

    def mechanisms(self) -> List[Tuple[str, Mechanism]]:
        """Delivery mechanisms in the order they are tried."""
        if self.is_windows:
            return [(RAW, self._windows_raw), (QUEUE, self._windows_queue)]
        return [(RAW, self._cups_raw), (QUEUE, self._cups_queue)]

    async def submit(self, content: str) -> str:
        """Deliver *content* through the OS; return the mechanism that worked.

        Raises:
            SystemPrinterError: the scratch file could not be written or every
                mechanism failed.
        """
        loop = asyncio.get_running_loop()
        printer_name = await loop.run_in_executor(None, self.detect_printer_name)
        errors: List[str] = []
        path: Path | None = None
        try:
            path = self.scratch_dir() / f"thermal_receipt_{uuid.uuid4().hex}.txt"
            path.write_bytes(content.encode(config.SYSTEM_PRINTER_ENCODING, errors="replace"))

            for name, mechanism in self.mechanisms():
                try:
                    # subprocess.run enforces SYSTEM_PRINT_TIMEOUT itself and
                    # kills the child; this bound covers in-process spooler calls
                    await asyncio.wait_for(
                        loop.run_in_executor(None, mechanism, path, printer_name),
                        timeout=config.SYSTEM_PRINT_TIMEOUT + 1,
                    )
                except asyncio.TimeoutError:
                    logger.warning("System printer %s method timed out", name)
                    errors.append(f"{name}: timeout")
                    continue
                except Exception as e:
                    logger.warning("System printer %s method failed: %s", name, e)
                    errors.append(f"{name}: {e}")
                    continue
                logger.info(
                    "Printed via system printer %s using %s method",
                    printer_name or "(default)",
                    name,
                )
                return name
        except OSError as e:
            raise SystemPrinterError(f"Could not write scratch file: {e}") from e
        finally:
            if path is not None:
                try:
                    path.unlink(missing_ok=True)
                except OSError as e:
                    logger.warning("Failed to delete scratch file %s: %s", path, e)

        raise SystemPrinterError("; ".join(errors))
