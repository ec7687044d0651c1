"""Tests for template rendering to command stream and plain text."""

import pytest

from errors import InvalidAmount
from models import Template
from renderer import render
from targets import CommandStream, Directive, PlainText


def _template(*components):
    return Template.from_dict({"name": "test", "style": {"components": list(components)}})


def _component(type_, order, enabled=True, styles=None, data=None, id_=None):
    return {
        "id": id_ or f"{type_}-{order}",
        "type": type_,
        "enabled": enabled,
        "order": order,
        "styles": styles or {},
        "data": data or {},
    }


class TestSaleComponents:
    """Tests for itemList, paymentList and totals."""

    def test_item_list_and_totals_scenario(self, sale):
        """Two two-line items followed by a single totals line."""
        template = _template(_component("itemList", 1), _component("totals", 2))

        stream = render(template, sale, CommandStream())

        assert stream.lines() == [
            "1. Tea",
            "   2 pcs x 10000 = 20000",
            "2. Bread",
            "   1 шт x 5000 = 5000",
            "ИТОГО: 25 000.00 UZS",
        ]
        # product names bold, trailing feed + cut
        assert stream.directives[0] == Directive("bold", True)
        assert stream.directives[-2:] == [Directive("feed", 2), Directive("cut")]

    def test_totals_default_to_right_alignment(self, sale):
        """Totals are right-aligned unless the style says otherwise."""
        stream = render(_template(_component("totals", 1)), sale, CommandStream())
        total_index = stream.directives.index(Directive("line", "ИТОГО: 25 000.00 UZS"))
        assert Directive("align", "right") in stream.directives[:total_index]

    def test_payment_list(self, sale):
        """One currency line per payment, aligned per the style."""
        sale["sale_payments"].append({"payment_method": "Card", "amount": 1234.5})
        stream = render(_template(_component("paymentList", 1, styles={"textAlign": "right"})), sale, CommandStream())
        assert stream.lines() == ["Cash: 30 000.00 UZS", "Card: 1 234.50 UZS"]
        assert stream.directives[0] == Directive("align", "right")

    def test_empty_collections_render_nothing(self, sale):
        """No items and no payments produce no lines."""
        sale["sale_items"] = []
        sale["sale_payments"] = []
        template = _template(_component("itemList", 1), _component("paymentList", 2))
        assert render(template, sale, CommandStream()).lines() == []

    def test_malformed_total_raises(self, sale):
        """A total that does not parse raises InvalidAmount."""
        sale["total_amount"] = "n/a"
        with pytest.raises(InvalidAmount):
            render(_template(_component("totals", 1)), sale, CommandStream())

    def test_zero_quantity_raises(self, sale):
        """Unit price cannot be derived from a zero quantity."""
        sale["sale_items"][0]["quantity"] = 0
        with pytest.raises(InvalidAmount):
            render(_template(_component("itemList", 1)), sale, CommandStream())


class TestTextComponents:
    """Tests for text, footer, divider and logo."""

    def test_text_component_substitutes_and_styles(self, sale):
        """Variables are substituted and each text line is styled."""
        template = _template(
            _component(
                "text",
                1,
                styles={"textAlign": "center", "fontWeight": "bold"},
                data={"text": "{{storeName}}\n{{date}} {{time}}"},
            )
        )

        stream = render(template, sale, CommandStream())

        assert stream.directives[:4] == [
            Directive("align", "center"),
            Directive("bold", True),
            Directive("line", "Demo Store"),
            Directive("line", "12.10.2025 10:30:00"),
        ]
        # style reset after the component
        assert stream.directives[4:6] == [Directive("bold", False), Directive("align", "left")]

    def test_text_without_text_is_skipped(self, sale):
        """A footer without data.text prints nothing."""
        stream = render(_template(_component("footer", 1)), sale, CommandStream())
        assert stream.lines() == []

    def test_divider_rule_or_blank_line(self, sale):
        """borderTop draws a rule, otherwise a blank line."""
        template = _template(
            _component("divider", 1, styles={"borderTop": True}),
            _component("divider", 2),
        )
        ops = [d for d in render(template, sale, CommandStream()).directives if d.op in ("rule", "feed")]
        assert ops == [Directive("rule"), Directive("feed", 1), Directive("feed", 2)]

    def test_logo_placeholder_only_with_url(self, sale):
        """The logo placeholder needs a url."""
        with_logo = render(_template(_component("logo", 1, data={"url": "https://x/logo.png"})), sale, CommandStream())
        without_logo = render(_template(_component("logo", 1)), sale, CommandStream())
        assert with_logo.lines() == ["[LOGO]"]
        assert Directive("align", "center") in with_logo.directives
        assert without_logo.lines() == []


class TestRender:
    """Tests for component selection, ordering and targets."""

    def test_disabled_and_unknown_components_never_render(self, sale):
        """Disabled and unknown components are absent from both targets."""
        template = _template(
            _component("text", 1, enabled=False, data={"text": "hidden"}),
            _component("qrCode", 2, data={"text": "future"}),
            _component("text", 3, data={"text": "shown"}),
        )
        assert render(template, sale, CommandStream()).lines() == ["shown"]
        assert "hidden" not in render(template, sale, PlainText()).getvalue()

    def test_order_is_stable_regardless_of_input_order(self, sale):
        """Same enabled order gives the same output, ties keep input position."""
        components = [
            _component("text", 2, data={"text": "B"}),
            _component("text", 1, data={"text": "A"}),
            _component("text", 2, data={"text": "C"}, id_="tie"),
        ]
        first = render(_template(*components), sale, CommandStream())
        second = render(_template(*components), sale, CommandStream())
        shuffled = render(_template(components[1], components[0], components[2]), sale, CommandStream())

        assert first.lines() == ["A", "B", "C"]
        assert first.directives == second.directives == shuffled.directives

    def test_plain_text_rendering(self, sale):
        """Plain text pads for alignment and marks bold lines."""
        template = _template(
            _component("text", 1, styles={"textAlign": "center"}, data={"text": "{{storeName}}"}),
            _component("divider", 2, styles={"borderTop": True}),
            _component("itemList", 3),
            _component("totals", 4, styles={"fontWeight": "bold"}),
        )

        text = render(template, sale, PlainText()).getvalue()
        lines = text.split("\n")

        assert lines[0] == "Demo Store".center(32).rstrip()
        assert lines[1] == "-" * 32
        assert lines[2] == "**1. Tea**"
        assert lines[3] == "   2 pcs x 10000 = 20000"
        assert lines[6] == "**ИТОГО: 25 000.00 UZS**".rjust(32)
        assert text.endswith("UZS**\n\n\n")
