"""Template variable substitution for sale receipts.

Free text in ``text`` / ``footer`` components may contain ``{{token}}``
placeholders from a fixed vocabulary. Each token maps to a resolver that reads
the sale record; resolvers run only for tokens that actually occur in the text,
so a malformed ``sold_date`` does not break a template that never prints it.
Unknown tokens stay in the output verbatim.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal
from typing import Any, Callable, Dict, Mapping

import config
from formatting import format_day, format_number, format_time, parse_amount

logger = logging.getLogger(__name__)

Record = Mapping[str, Any]

TOKEN_RE = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def _section(record: Record, key: str) -> Mapping[str, Any]:
    value = record.get(key)
    return value if isinstance(value, Mapping) else {}


def _payments(record: Record) -> list[Mapping[str, Any]]:
    payments = record.get("sale_payments")
    if not isinstance(payments, list):
        return []
    return [p for p in payments if isinstance(p, Mapping)]


def total_paid(record: Record) -> Decimal:
    """Sum of all payment amounts; zero when there are no payments."""
    return sum(
        (parse_amount(p.get("amount")) for p in _payments(record)),
        Decimal(0),
    )


def compute_change(record: Record) -> Decimal:
    """Change due to the customer, never negative."""
    change = total_paid(record) - parse_amount(record.get("total_amount"))
    return max(Decimal(0), change)


def _receipt_number(record: Record) -> str:
    number = record.get("sale_id") or record.get("id")
    return "" if number is None else str(number)


def _sold_date(record: Record) -> Any:
    return record.get("sold_date")


def _payments_block(record: Record) -> str:
    return "\n".join(
        f"{p.get('payment_method', '')}: {format_number(p.get('amount'))} {config.CURRENCY_SUFFIX}"
        for p in _payments(record)
    )


RESOLVERS: Dict[str, Callable[[Record], str]] = {
    "storeName": lambda r: str(_section(r, "store_read").get("name") or ""),
    "storeAddress": lambda r: str(_section(r, "store_read").get("address") or ""),
    "storePhone": lambda r: str(_section(r, "store_read").get("phone_number") or ""),
    "receiptNumber": _receipt_number,
    "sale_id": _receipt_number,
    "date": lambda r: format_day(_sold_date(r)) if _sold_date(r) else "",
    "time": lambda r: format_time(_sold_date(r)) if _sold_date(r) else "",
    "cashierName": lambda r: str(_section(r, "worker_read").get("name") or ""),
    "paymentMethod": lambda r: ", ".join(
        str(p.get("payment_method", "")) for p in _payments(r)
    ),
    "change": lambda r: format_number(compute_change(r)),
    "returnAmount": lambda r: format_number(compute_change(r)),
    "footerText": lambda r: config.FOOTER_TEXT,
    "total": lambda r: format_number(r.get("total_amount")),
    "payments": _payments_block,
}


def substitute(text: str, record: Record) -> str:
    """Replace every known ``{{token}}`` in *text* with its value for *record*.

    Raises:
        FormattingError: a used token reads a malformed amount or date.
    """
    resolved: Dict[str, str] = {}

    def replace(match: re.Match[str]) -> str:
        name = match.group(1)
        resolver = RESOLVERS.get(name)
        if resolver is None:
            logger.debug("Unknown template variable left as is: %s", match.group(0))
            return match.group(0)
        if name not in resolved:
            resolved[name] = resolver(record)
        return resolved[name]

    return TOKEN_RE.sub(replace, text)
