"""Receipt template model and request validation.

Templates arrive as JSON (``template.style.components``) and are parsed into
frozen dataclasses. Records (sale, shift closure) stay plain mappings: they are
read-only inputs and their shape belongs to the POS backend, so only the fields
the service depends on are checked here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Tuple

from errors import FormattingError, InvalidRequest
from formatting import parse_amount

ALIGNMENTS = ("left", "center", "right")

COMPONENT_TYPES = (
    "logo",
    "text",
    "footer",
    "divider",
    "itemList",
    "paymentList",
    "totals",
)


@dataclass(frozen=True)
class ComponentStyle:
    """Visual style of a template component."""

    text_align: str | None = None
    bold: bool = False
    border_top: bool = False

    def align(self, default: str = "left") -> str:
        """Alignment to use, falling back to *default* for missing/unknown values."""
        if self.text_align in ALIGNMENTS:
            return self.text_align
        return default

    @classmethod
    def from_dict(cls, raw: Any) -> "ComponentStyle":
        if not isinstance(raw, Mapping):
            return cls()
        return cls(
            text_align=raw.get("textAlign"),
            bold=raw.get("fontWeight") == "bold",
            border_top=bool(raw.get("borderTop")),
        )


@dataclass(frozen=True)
class Component:
    """One typed, styled entry of a receipt template.

    ``type`` is kept even when it is not one of ``COMPONENT_TYPES``: templates
    may carry component kinds this service does not know yet.
    """

    type: str
    id: str = ""
    enabled: bool = True
    order: float = 0
    style: ComponentStyle = field(default_factory=ComponentStyle)
    data: Mapping[str, Any] = field(default_factory=dict)

    @property
    def text(self) -> str | None:
        value = self.data.get("text")
        return value if isinstance(value, str) and value else None

    @property
    def logo_url(self) -> str | None:
        value = self.data.get("url")
        return value if value else None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Component":
        order = raw.get("order", 0)
        if isinstance(order, bool) or not isinstance(order, (int, float)):
            raise InvalidRequest(f"Invalid component order: {order!r}")
        data = raw.get("data")
        return cls(
            type=str(raw.get("type", "")),
            id=str(raw.get("id", "")),
            enabled=bool(raw.get("enabled", False)),
            order=order,
            style=ComponentStyle.from_dict(raw.get("styles")),
            data=dict(data) if isinstance(data, Mapping) else {},
        )


@dataclass(frozen=True)
class Template:
    """Named, versioned list of receipt components."""

    components: Tuple[Component, ...]
    id: Any = None
    name: str = ""
    is_used: bool = False

    def active_components(self) -> List[Component]:
        """Enabled components by ``order``; ties keep their template position."""
        return sorted((c for c in self.components if c.enabled), key=lambda c: c.order)

    @classmethod
    def from_dict(cls, raw: Any) -> "Template":
        """Parse a posted template.

        Raises:
            InvalidRequest: there is no ``style.components`` list.
        """
        if not isinstance(raw, Mapping):
            raise InvalidRequest("Invalid template provided.")
        style = raw.get("style")
        components = style.get("components") if isinstance(style, Mapping) else None
        if not isinstance(components, list):
            raise InvalidRequest("Invalid template provided.")
        return cls(
            components=tuple(
                Component.from_dict(c) for c in components if isinstance(c, Mapping)
            ),
            id=raw.get("id"),
            name=str(raw.get("name") or ""),
            is_used=bool(raw.get("is_used", False)),
        )


def _check_entries(entries: Any, what: str, required: bool = True) -> None:
    """Every entry of a nested list must be an object."""
    if entries is None and not required:
        return
    if not isinstance(entries, list):
        raise InvalidRequest(f"Invalid {what} list.")
    for index, entry in enumerate(entries, start=1):
        if not isinstance(entry, Mapping):
            raise InvalidRequest(f"Invalid {what} #{index}.")


def validate_sale(record: Any) -> Dict[str, Any]:
    """Check a sale record before anything is rendered.

    Every line item must carry a numeric, non-zero ``quantity`` and a numeric
    ``subtotal``: a price that fails to parse would otherwise be printed as
    ``0`` and the customer would get a receipt showing the item as free.

    Raises:
        InvalidRequest: required fields are missing or a line item is malformed.
    """
    if (
        not isinstance(record, Mapping)
        or not record.get("id")
        or not isinstance(record.get("store_read"), Mapping)
        or not isinstance(record.get("sale_items"), list)
    ):
        raise InvalidRequest("Invalid sale data provided.")

    for index, item in enumerate(record["sale_items"], start=1):
        if not isinstance(item, Mapping):
            raise InvalidRequest(f"Invalid sale item #{index}.")
        product = item.get("product_read")
        if product is not None and not isinstance(product, Mapping):
            raise InvalidRequest(f"Invalid sale item #{index}: product is not an object")
        units = product.get("available_units") if product else None
        if units is not None and not isinstance(units, list):
            raise InvalidRequest(f"Invalid sale item #{index}: available_units is not a list")
        try:
            quantity = parse_amount(item.get("quantity"))
            parse_amount(item.get("subtotal"))
        except FormattingError as e:
            raise InvalidRequest(f"Invalid sale item #{index}: {e}") from e
        if quantity == 0:
            raise InvalidRequest(f"Invalid sale item #{index}: zero quantity")

    _check_entries(record.get("sale_payments"), "sale payment", required=False)
    return dict(record)


def validate_shift_closure(record: Any) -> Dict[str, Any]:
    """Check the fields a shift closure cannot be printed without.

    Raises:
        InvalidRequest: ``id``, ``store`` or the ``payments`` list is missing,
            or a payment entry is not an object.
    """
    if (
        not isinstance(record, Mapping)
        or not record.get("id")
        or not isinstance(record.get("store"), Mapping)
        or not isinstance(record.get("payments"), list)
    ):
        raise InvalidRequest("Invalid shift closure data provided.")
    _check_entries(record["payments"], "payment")
    return dict(record)
