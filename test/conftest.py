"""Shared fixtures: mock printer context and sample records."""

import copy
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from delivery import DeliveryContext
from printer import ThermalPrinter
from system_printer import SystemSpooler

SALE = {
    "id": 501,
    "sale_id": 1001,
    "store_read": {"name": "Demo Store", "address": "Main St 1", "phone_number": "975000502"},
    "worker_read": {"name": "Alice"},
    "sold_date": "2025-10-12T10:30:00",
    "total_amount": "25000",
    "sale_items": [
        {
            "quantity": "2",
            "subtotal": "20000",
            "selling_unit": 1,
            "product_read": {
                "product_name": "Tea",
                "available_units": [{"id": 1, "short_name": "pcs"}],
            },
        },
        {
            "quantity": 1,
            "subtotal": 5000,
            "selling_unit": 9,
            "product_read": {"product_name": "Bread", "available_units": []},
        },
    ],
    "sale_payments": [{"payment_method": "Cash", "amount": "30000"}],
}

SHIFT_CLOSURE = {
    "id": 42,
    "store": {"name": "Demo Store", "address": "Main St 1", "phone_number": "975000502"},
    "register": {"name": "R1"},
    "cashier": {"name": "Bob", "role": "Cashier"},
    "opened_at": "2025-10-12T08:00:00",
    "closed_at": "2025-10-12T20:00:00",
    "opening_cash": "200.00",
    "closing_cash": "1000.00",
    "total_expected": 135200.0,
    "total_actual": 137200.0,
    "total_sales_count": 3,
    "total_sales_amount": 135000.0,
    "total_debt_amount": 0.0,
    "total_returns_amount": 0.0,
    "payments": [
        {"payment_method": "Card", "expected": "113000.00", "actual": "115000.00"},
        {"payment_method": "Cash", "expected": "2200.00", "actual": "2000.00"},
    ],
}


@pytest.fixture(autouse=True)
def receipt_config():
    """Pin layout settings that tests compare against."""
    with patch("config.CURRENCY_SUFFIX", "UZS"), patch("config.LINE_WIDTH", 32), patch(
        "config.DEFAULT_UNIT_LABEL", "шт"
    ), patch("config.CODEPAGE_ID", -1), patch("config.PRINTER_PROFILE", None):
        yield


@pytest.fixture
def sale():
    return copy.deepcopy(SALE)


@pytest.fixture
def shift_closure():
    return copy.deepcopy(SHIFT_CLOSURE)


@pytest.fixture
def mock_context():
    """Connected mock printer plus a spooler whose submit() is an AsyncMock."""
    with patch("config.MOCK_PRINTER", True):
        printer = ThermalPrinter()
    printer.connect()
    spooler = MagicMock(spec=SystemSpooler)
    spooler.submit = AsyncMock(return_value="raw")
    return DeliveryContext(printer=printer, spooler=spooler)
