"""Async device adapter for the H-58C thermal printer (ESC/POS compatible).

``ThermalPrinter`` is the process-wide device handle: it detects the printer
once at startup and serialises commits. ``PrinterJob`` assembles one receipt
into an in-memory python-escpos ``Dummy`` buffer, so a job can be built (and
its size reported) even when nothing is physically attached.
"""

import asyncio
import logging
import threading
from typing import Any, Callable, List, Tuple

import config
from errors import DeviceExecutionError
from targets import CommandStream

logger = logging.getLogger(__name__)

# ESC @ (initialize)
ESC_INIT = b"\x1b\x40"
# ESC t <n> (select code page)
ESC_CODEPAGE = b"\x1bt"


class MockPrinter:
    """Stub printer for testing without hardware."""

    def open(self, raise_not_found: bool = True) -> None:
        """No-op stub."""

    def close(self) -> None:
        """No-op stub."""

    def _raw(self, data: bytes) -> None:
        """No-op stub."""

    def is_online(self) -> bool:
        """Return online status (python-escpos compatible)."""
        return True


def _connection_candidates() -> List[Tuple[str, Callable[[], Any]]]:
    """(name, factory) pairs for the configured connection, in detection order."""
    # Import lazily so dev/tests can run in mock mode without USB/serial backends
    from escpos import printer as escpos_printer  # type: ignore

    profile = config.PRINTER_PROFILE
    factories = {
        "usb": lambda: escpos_printer.Usb(
            config.USB_VENDOR_ID, config.USB_PRODUCT_ID, profile=profile
        ),
        "file": lambda: escpos_printer.File(devfile=config.PRINTER_DEVFILE, profile=profile),
        "serial": lambda: escpos_printer.Serial(
            devfile=config.SERIAL_PORT,
            baudrate=config.BAUDRATE,
            bytesize=config.SERIAL_BYTESIZE,
            parity=config.SERIAL_PARITY,
            stopbits=config.SERIAL_STOPBITS,
            timeout=config.SERIAL_TIMEOUT,
            dsrdtr=config.SERIAL_DSRDTR,
            profile=profile,
        ),
        "network": lambda: escpos_printer.Network(
            config.NETWORK_HOST, port=config.NETWORK_PORT, profile=profile
        ),
    }

    if config.PRINTER_CONNECTION == "auto":
        names = ["usb", "file", "serial"]
        if config.NETWORK_HOST:
            names.append("network")
    elif config.PRINTER_CONNECTION in factories:
        names = [config.PRINTER_CONNECTION]
    else:
        logger.error("Unknown PRINTER_CONNECTION: %s", config.PRINTER_CONNECTION)
        names = []
    return [(name, factories[name]) for name in names]


class ThermalPrinter:
    """Process-wide printer handle: readiness flag, device and commit lock."""

    def __init__(self) -> None:
        self.device: Any = None
        self.interface: str | None = None
        self.ready = False
        self._mock = config.MOCK_PRINTER
        # One in-flight commit per physical device
        self._lock = asyncio.Lock()
        # Held by the worker thread for the whole write, so a commit that timed
        # out still owns the device until the write returns
        self._write_lock = threading.Lock()

    def connect(self) -> bool:
        """Detect the printer once; calling again after success is a no-op."""
        if self.ready:
            return True

        if self._mock:
            self.device = MockPrinter()
            self.interface = "mock"
            self.ready = True
            logger.info("Using mock printer")
            return True

        for name, factory in _connection_candidates():
            try:
                device = factory()
                device.open()
            except Exception as e:
                logger.warning("Interface %s failed: %s", name, e)
                continue
            self.device = device
            self.interface = name
            self.ready = True
            logger.info(
                "Thermal printer initialized (interface=%s, width=%d chars)",
                name,
                config.LINE_WIDTH,
            )
            return True

        logger.error(
            "No compatible printer interface found; check USB connection, power and paper"
        )
        return False

    def close(self) -> None:
        if self.device is None:
            return
        try:
            self.device.close()
        except Exception as e:
            logger.warning("Printer close failed: %s", e)

    def new_job(self) -> "PrinterJob":
        return PrinterJob(self)

    def _write(self, data: bytes) -> None:
        with self._write_lock:
            self.device._raw(data)

    async def commit(self, data: bytes) -> None:
        """Send an assembled job to the device, bounded by DEVICE_COMMIT_TIMEOUT.

        Raises:
            DeviceExecutionError: the device is missing, rejected the data or
                did not accept it in time.
        """
        if not self.ready or self.device is None:
            raise DeviceExecutionError("Printer not connected")

        async with self._lock:
            try:
                await asyncio.wait_for(
                    asyncio.get_running_loop().run_in_executor(None, self._write, data),
                    timeout=config.DEVICE_COMMIT_TIMEOUT,
                )
            except asyncio.TimeoutError as e:
                raise DeviceExecutionError(
                    f"Print timeout after {config.DEVICE_COMMIT_TIMEOUT:g}s", e
                ) from e
            except Exception as e:
                raise DeviceExecutionError(f"Device rejected print job: {e}", e) from e

        if self._mock:
            logger.info("Printed (mock): %d bytes", len(data))
        else:
            logger.info("Printed %d bytes via %s", len(data), self.interface)


class PrinterJob:
    """Command buffer for one receipt, flushed to the device by ``commit()``."""

    def __init__(self, printer: ThermalPrinter) -> None:
        from escpos.printer import Dummy  # type: ignore

        self._printer = printer
        self._buffer = Dummy(profile=config.PRINTER_PROFILE)
        self.reset()

    @property
    def buffer(self) -> bytes:
        return self._buffer.output

    def reset(self) -> None:
        """Drop buffered commands and start from the printer's power-on state."""
        self._buffer.clear()
        self._buffer._raw(ESC_INIT)
        if config.CODEPAGE_ID >= 0:
            self._buffer._raw(ESC_CODEPAGE + bytes((config.CODEPAGE_ID,)))

    def align(self, align: str) -> None:
        self._buffer.set(align=align)

    def bold(self, enabled: bool) -> None:
        self._buffer.set(bold=bool(enabled))

    def double_height(self, enabled: bool) -> None:
        if enabled:
            self._buffer.set(double_height=True)
        else:
            self._buffer.set(normal_textsize=True)

    def line(self, text: str = "") -> None:
        self._buffer.textln(text)

    def rule(self) -> None:
        self._buffer.textln("-" * config.LINE_WIDTH)

    def feed(self, lines: int = 1) -> None:
        self._buffer.ln(lines)

    def cut(self) -> None:
        """Cut paper with python-escpos version compatibility."""
        # some versions accept cut(partial=True), others cut(mode="PART")
        try:
            self._buffer.cut(partial=True)
            return
        except TypeError:
            pass
        try:
            self._buffer.cut(mode="PART")
            return
        except TypeError:
            pass
        self._buffer.cut()

    def reset_style(self) -> None:
        self.bold(False)
        self.align("left")

    def apply(self, stream: CommandStream) -> "PrinterJob":
        """Replay a rendered command stream into this job."""
        for directive in stream.directives:
            method = getattr(self, directive.op)
            if directive.value is None:
                method()
            else:
                method(directive.value)
        return self

    async def commit(self) -> None:
        await self._printer.commit(self.buffer)
