"""Formatting primitives for receipt amounts, quantities and timestamps.

All amounts go through ``Decimal`` so that currency values coming in as JSON
strings (``"2200.00"``) and floats (``135200.0``) round the same way.
Digit groups are separated with a plain space: the printer code pages do not
reliably carry a no-break space.
"""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

import config
from errors import FormattingError, InvalidAmount, InvalidDate

_CENTS = Decimal("0.01")
_MILLS = Decimal("0.001")


def parse_amount(value: Any) -> Decimal:
    """Parse a numeric-or-string amount into a finite ``Decimal``.

    Raises:
        InvalidAmount: value is missing, not numeric, NaN or infinite.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidAmount(value)
    try:
        if isinstance(value, Decimal):
            amount = value
        elif isinstance(value, (int, float)):
            amount = Decimal(str(value))
        elif isinstance(value, str):
            amount = Decimal(value.strip())
        else:
            raise InvalidAmount(value)
    except InvalidOperation as e:
        raise InvalidAmount(value) from e
    if not amount.is_finite():
        raise InvalidAmount(value)
    return amount


def _quantize(amount: Decimal, exp: Decimal, original: Any) -> Decimal:
    try:
        return amount.quantize(exp, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise InvalidAmount(original) from e


def _group(text: str) -> str:
    return text.replace(",", " ")


def format_currency(amount: Any) -> str:
    """Two fraction digits, grouped, with the currency suffix: ``1 234.50 UZS``."""
    value = _quantize(parse_amount(amount), _CENTS, amount)
    return f"{_group(f'{value:,.2f}')} {config.CURRENCY_SUFFIX}"


def format_number(amount: Any) -> str:
    """Grouped number with at most three fraction digits: ``3 000``, ``1 234.5``."""
    value = _quantize(parse_amount(amount), _MILLS, amount)
    text = f"{value:,.3f}".rstrip("0").rstrip(".")
    return _group(text)


def format_fixed(amount: Any) -> str:
    """Plain two-decimal rendering without grouping or suffix: ``2200.00``."""
    value = _quantize(parse_amount(amount), _CENTS, amount)
    return f"{value:f}"


def format_difference(amount: Any) -> str:
    """Signed two-decimal difference: ``+2000.00`` / ``-200.00``."""
    value = parse_amount(amount)
    sign = "+" if value >= 0 else "-"
    return sign + format_fixed(abs(value))


def format_compact_number(amount: Any) -> str:
    """Shortest rendering up to three fraction digits.

    ``1.000 -> "1"``, ``1.50 -> "1.5"``, ``1.123 -> "1.123"``. Anything that
    does not parse renders as ``"0"``, so a ``"0"`` here is not proof of a zero
    value.
    """
    try:
        value = parse_amount(amount)
    except FormattingError:
        return "0"
    if value == value.to_integral_value():
        return str(int(value))
    try:
        value = value.quantize(_MILLS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return "0"
    return f"{value:f}".rstrip("0").rstrip(".")


def parse_datetime(value: Any) -> datetime:
    """Parse ISO-8601 text, a ``datetime`` or epoch milliseconds.

    Timezone-aware values are converted to local time, naive ones are kept as
    they are.

    Raises:
        InvalidDate: value cannot be interpreted as a point in time.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            parsed = datetime.fromtimestamp(value / 1000).astimezone()
        except (OverflowError, OSError, ValueError) as e:
            raise InvalidDate(value) from e
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text[-1] in "Zz":
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as e:
            raise InvalidDate(value) from e
    else:
        raise InvalidDate(value)

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone()
    return parsed


def format_date(value: Any) -> str:
    """``DD.MM.YYYY HH:MM:SS`` in local time."""
    return parse_datetime(value).strftime("%d.%m.%Y %H:%M:%S")


def format_day(value: Any) -> str:
    return parse_datetime(value).strftime("%d.%m.%Y")


def format_time(value: Any) -> str:
    return parse_datetime(value).strftime("%H:%M:%S")
