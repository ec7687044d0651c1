"""Render a receipt template against a sale record.

Each component type has its own drawing function. ``render`` walks the
enabled components in order and dispatches on ``Component.type``; unknown
types are skipped so that newer templates still print on older services.
After every component the style is reset to left-aligned, regular weight.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, TypeVar

import config
from errors import InvalidAmount
from formatting import format_compact_number, format_currency, parse_amount
from models import Component, Template
from targets import ReceiptTarget
from variables import Record, substitute

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=ReceiptTarget)

LOGO_PLACEHOLDER = "[LOGO]"
TOTAL_LABEL = "ИТОГО"


def _draw_logo(component: Component, record: Record, target: ReceiptTarget) -> None:
    if not component.logo_url:
        return
    target.align("center")
    target.line(LOGO_PLACEHOLDER)
    target.feed(1)


def _draw_text(component: Component, record: Record, target: ReceiptTarget) -> None:
    if component.text is None:
        return
    text = substitute(component.text, record)
    target.align(component.style.align())
    target.bold(component.style.bold)
    for line in text.split("\n"):
        target.line(line)


def _draw_divider(component: Component, record: Record, target: ReceiptTarget) -> None:
    if component.style.border_top:
        target.rule()
    else:
        target.feed(1)


def _unit_name(item: Mapping[str, Any]) -> str:
    product = item.get("product_read") or {}
    for unit in product.get("available_units") or []:
        if isinstance(unit, Mapping) and unit.get("id") == item.get("selling_unit"):
            return str(unit.get("short_name") or config.DEFAULT_UNIT_LABEL)
    return config.DEFAULT_UNIT_LABEL


def _draw_item_list(component: Component, record: Record, target: ReceiptTarget) -> None:
    items = record.get("sale_items") or []
    for index, item in enumerate(items, start=1):
        product = item.get("product_read") or {}
        quantity = parse_amount(item.get("quantity"))
        subtotal = parse_amount(item.get("subtotal"))
        if quantity == 0:
            raise InvalidAmount(item.get("quantity"))
        price = subtotal / quantity

        # Product name is always bold, the quantity line follows the component
        target.bold(True)
        target.line(f"{index}. {product.get('product_name', '')}")
        target.bold(component.style.bold)
        target.line(
            f"   {format_compact_number(quantity)} {_unit_name(item)}"
            f" x {format_compact_number(price)} = {format_compact_number(subtotal)}"
        )


def _draw_payment_list(component: Component, record: Record, target: ReceiptTarget) -> None:
    payments = record.get("sale_payments") or []
    if not payments:
        return
    target.align(component.style.align())
    target.bold(component.style.bold)
    for payment in payments:
        target.line(f"{payment.get('payment_method', '')}: {format_currency(payment.get('amount'))}")


def _draw_totals(component: Component, record: Record, target: ReceiptTarget) -> None:
    target.align(component.style.align(default="right"))
    target.bold(component.style.bold)
    target.line(f"{TOTAL_LABEL}: {format_currency(record.get('total_amount'))}")


DRAWERS: Dict[str, Callable[[Component, Record, ReceiptTarget], None]] = {
    "logo": _draw_logo,
    "text": _draw_text,
    "footer": _draw_text,
    "divider": _draw_divider,
    "itemList": _draw_item_list,
    "paymentList": _draw_payment_list,
    "totals": _draw_totals,
}


def render(template: Template, record: Record, target: T) -> T:
    """Draw *template* filled with *record* onto *target* and return the target.

    Raises:
        FormattingError: an amount or date the template prints is malformed.
    """
    components = template.active_components()
    logger.debug(
        "Rendering template %r (%d enabled components) to %s",
        template.name,
        len(components),
        type(target).__name__,
    )
    for component in components:
        drawer = DRAWERS.get(component.type)
        if drawer is None:
            logger.warning("Unknown component type %r (id=%s), skipped", component.type, component.id)
            continue
        drawer(component, record, target)
        target.reset_style()

    target.feed(2)
    target.cut()
    return target
