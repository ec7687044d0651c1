"""Error taxonomy for the print service.

Only ``InvalidRequest`` and ``DeviceNotReady`` ever reach the caller. Device and
system printer failures are recovered inside the delivery fallback chain.
"""

from __future__ import annotations


class ReceiptPrintError(Exception):
    """Base class for print service errors."""

    status_code: int = 500


class InvalidRequest(ReceiptPrintError):
    """Malformed or incomplete record or template."""

    status_code = 400


class DeviceNotReady(ReceiptPrintError):
    """No primary device was detected at startup."""

    status_code = 500

    def __init__(
        self,
        message: str = "Printer not found or not connected. Please check printer connection.",
    ) -> None:
        super().__init__(message)


class DeviceExecutionError(ReceiptPrintError):
    """Commit to the primary device failed or timed out."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class SystemPrinterError(ReceiptPrintError):
    """Every OS-level delivery mechanism failed."""


class FormattingError(ReceiptPrintError, ValueError):
    """Malformed numeric or date field inside a record."""

    status_code = 400


class InvalidAmount(FormattingError):
    def __init__(self, value: object) -> None:
        super().__init__(f"Invalid amount: {value!r}")
        self.value = value


class InvalidDate(FormattingError):
    def __init__(self, value: object) -> None:
        super().__init__(f"Invalid date: {value!r}")
        self.value = value
