"""Delivery fallback orchestrator.

A print request walks a forward-only state machine::

    TRY_DEVICE -> TRY_SYSTEM_PRINTER -> BUFFER_ONLY -> DONE

Any state that succeeds jumps straight to DONE; failures only move forward.
Nothing is retried and nothing is rolled back: the device may already have
fed or cut paper when a later failure is detected.

The caller supplies a drawing function that writes a document onto a
``ReceiptTarget``. It is run once for the command stream before anything is
sent, and once more for plain text only if the device path fails, so a
``FormattingError`` always surfaces before any paper moves.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, List

from errors import DeviceExecutionError, SystemPrinterError
from printer import PrinterJob, ThermalPrinter
from system_printer import SystemSpooler
from targets import CommandStream, PlainText, ReceiptTarget

logger = logging.getLogger(__name__)

Drawing = Callable[[ReceiptTarget], object]


class DeliveryMethod(str, enum.Enum):
    DEVICE = "device"
    SYSTEM_PRINTER = "system_printer"
    BUFFER_ONLY = "buffer_only"


class DeliveryState(enum.Enum):
    TRY_DEVICE = "try_device"
    TRY_SYSTEM_PRINTER = "try_system_printer"
    BUFFER_ONLY = "buffer_only"
    DONE = "done"


@dataclass(frozen=True)
class DeliveryAttempt:
    method: DeliveryMethod
    ok: bool
    reason: str | None = None


@dataclass
class DeliveryResult:
    method: DeliveryMethod
    buffer_size: int
    attempts: List[DeliveryAttempt] = field(default_factory=list)
    # system printer mechanism that succeeded ("raw" / "queue")
    mechanism: str | None = None


@dataclass
class DeliveryContext:
    """Process-wide delivery resources shared by all requests."""

    printer: ThermalPrinter = field(default_factory=ThermalPrinter)
    spooler: SystemSpooler = field(default_factory=SystemSpooler)

    def startup(self) -> bool:
        """Detect the primary device; safe to call more than once."""
        return self.printer.connect()


class DeliveryRun:
    """One pass through the fallback chain for a single document."""

    def __init__(self, context: DeliveryContext, draw: Drawing, label: str = "receipt") -> None:
        self.context = context
        self.draw = draw
        self.label = label
        self.attempts: List[DeliveryAttempt] = []
        self.mechanism: str | None = None
        self.job: PrinterJob | None = None

    def _record(self, method: DeliveryMethod, ok: bool, reason: str | None = None) -> None:
        self.attempts.append(DeliveryAttempt(method, ok, reason))

    def prepare(self) -> PrinterJob:
        """Render the command stream and assemble the device job."""
        stream = CommandStream()
        self.draw(stream)
        return self.context.printer.new_job().apply(stream)

    async def _try_device(self, job: PrinterJob) -> DeliveryState:
        try:
            await job.commit()
        except DeviceExecutionError as e:
            logger.error("Device print of %s failed: %s", self.label, e)
            self._record(DeliveryMethod.DEVICE, False, str(e))
            return DeliveryState.TRY_SYSTEM_PRINTER
        self._record(DeliveryMethod.DEVICE, True)
        return DeliveryState.DONE

    async def _try_system_printer(self, job: PrinterJob) -> DeliveryState:
        logger.info("Trying system printer fallback for %s", self.label)
        text = PlainText()
        self.draw(text)
        try:
            self.mechanism = await self.context.spooler.submit(text.getvalue())
        except SystemPrinterError as e:
            logger.error("System printer also failed for %s: %s", self.label, e)
            self._record(DeliveryMethod.SYSTEM_PRINTER, False, str(e))
            return DeliveryState.BUFFER_ONLY
        self._record(DeliveryMethod.SYSTEM_PRINTER, True)
        return DeliveryState.DONE

    async def _buffer_only(self, job: PrinterJob) -> DeliveryState:
        logger.warning(
            "Print data for %s prepared but not delivered (%d bytes)",
            self.label,
            len(job.buffer),
        )
        self._record(DeliveryMethod.BUFFER_ONLY, True)
        return DeliveryState.DONE

    async def run(self) -> DeliveryResult:
        """Drive the state machine to DONE.

        Raises:
            FormattingError: the document could not be rendered; nothing was
                sent anywhere.
        """
        job = self.job = self.prepare()
        steps = {
            DeliveryState.TRY_DEVICE: self._try_device,
            DeliveryState.TRY_SYSTEM_PRINTER: self._try_system_printer,
            DeliveryState.BUFFER_ONLY: self._buffer_only,
        }
        state = DeliveryState.TRY_DEVICE
        while state is not DeliveryState.DONE:
            state = await steps[state](job)

        # only the succeeding state records ok=True and ends the run
        return DeliveryResult(
            method=self.attempts[-1].method,
            buffer_size=len(job.buffer),
            attempts=list(self.attempts),
            mechanism=self.mechanism,
        )


async def deliver(context: DeliveryContext, draw: Drawing, label: str = "receipt") -> DeliveryResult:
    """Render with *draw* and push the result down the fallback chain."""
    return await DeliveryRun(context, draw, label).run()
