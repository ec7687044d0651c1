"""Fixed documents: diagnostic test receipt and shift-closure summary.

These are laid out in code rather than through a template. Builders draw onto
any ``ReceiptTarget`` so the same layout serves both the device command stream
and the plain-text fallback.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping

from formatting import (
    format_currency,
    format_date,
    format_difference,
    format_fixed,
    parse_amount,
)
from targets import ReceiptTarget

PRINTER_MODEL = "H-58C Thermal Printer"

# Built-in record for the fixed-data diagnostic print
SAMPLE_SHIFT_CLOSURE: dict[str, Any] = {
    "id": 104,
    "store": {"id": 1, "name": "Нокис Агаш Базар", "address": "Агаш Базар", "phone_number": "975000502"},
    "register": {"id": 4, "name": "Aa"},
    "cashier": {"id": 7, "name": "DESKTOPUSER", "phone_number": "+998991234567", "role": "Продавец"},
    "total_expected": 135200.0,
    "total_actual": 0,
    "total_sales_amount": 135000.0,
    "total_debt_amount": 0.0,
    "total_sales_count": 1,
    "total_returns_amount": 960000.0,
    "total_returns_count": 1,
    "total_income": 135000.0,
    "total_expense": 0.0,
    "opened_at": "2025-10-12T22:49:12.726141Z",
    "closed_at": "2025-10-12T22:51:17.384157Z",
    "opening_cash": "200.00",
    "closing_cash": "1000.00",
    "opening_comment": "aa",
    "closing_comment": "TEST QILIB ATIRMAN",
    "approval_comment": None,
    "is_active": False,
    "is_awaiting_approval": True,
    "is_approved": False,
    "approved_by": None,
    "payments": [
        {"id": 377, "payment_method": "Наличные", "expected": "2200.00", "actual": "2200.00"},
        {"id": 378, "payment_method": "Карта", "expected": "113000.00", "actual": "115000.00"},
        {"id": 379, "payment_method": "Click", "expected": "20000.00", "actual": "20000.00"},
        {"id": 380, "payment_method": "Перечисление", "expected": "0.00", "actual": "0.00"},
    ],
}


def _heading(target: ReceiptTarget, text: str) -> None:
    """Centered double-height bold title, followed by normal left text."""
    target.align("center")
    target.double_height(True)
    target.bold(True)
    target.line(text)
    target.bold(False)
    target.double_height(False)
    target.align("left")


def _label(target: ReceiptTarget, text: str) -> None:
    target.bold(True)
    target.line(text)
    target.bold(False)


def _section(record: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = record.get(key)
    return value if isinstance(value, Mapping) else {}


def _amount(record: Mapping[str, Any], key: str) -> Any:
    """Aggregate value; absent aggregates count as zero."""
    value = record.get(key)
    return 0 if value is None else value


def _timestamp(value: Any) -> str:
    return format_date(value) if value else "-"


def _yes_no(value: Any) -> str:
    return "Да" if value else "Нет"


def build_test_receipt(target: ReceiptTarget, printed_at: datetime | None = None) -> ReceiptTarget:
    """Diagnostic receipt confirming the printer, paper width and command set."""
    printed_at = printed_at or datetime.now()
    _heading(target, "ТЕСТ ПЕЧАТИ")
    target.rule()
    target.line(f"Принтер: {PRINTER_MODEL}")
    target.line("Ширина бумаги: 58мм")
    target.line("Команды: ESC/POS")
    target.rule()
    target.line(f"Время: {format_date(printed_at)}")
    target.line("Тест успешно выполнен!")
    target.feed(2)
    target.cut()
    return target


def build_shift_closure(
    record: Mapping[str, Any],
    target: ReceiptTarget,
    detailed: bool = False,
    printed_at: datetime | None = None,
) -> ReceiptTarget:
    """Shift-closure summary.

    ``detailed`` adds the cashier role, a full operations summary and the
    approval status block; it is used by the fixed-data diagnostic print.

    Raises:
        FormattingError: an amount or timestamp present in *record* is
            malformed.
    """
    printed_at = printed_at or datetime.now()
    store = _section(record, "store")
    register = _section(record, "register")
    cashier = _section(record, "cashier")

    _heading(target, "ЗАКРЫТИЕ СМЕНЫ")
    target.rule()

    target.line(f"Магазин: {store.get('name', '')}")
    target.line(f"Адрес: {store.get('address', '')}")
    target.line(f"Телефон: {store.get('phone_number', '')}")
    target.rule()

    target.line(f"Смена ID: {record.get('id', '')}")
    target.line(f"Касса: {register.get('name', '')}")
    target.line(f"Кассир: {cashier.get('name', '')}")
    if detailed:
        target.line(f"Роль: {cashier.get('role', '')}")
    target.rule()

    target.line(f"Открыта: {_timestamp(record.get('opened_at'))}")
    target.line(f"Закрыта: {_timestamp(record.get('closed_at'))}")
    target.rule()

    _label(target, "НАЛИЧНЫЕ В КАССЕ:")
    target.line(f"Начальная: {format_currency(_amount(record, 'opening_cash'))}")
    target.line(f"Конечная: {format_currency(_amount(record, 'closing_cash'))}")
    target.rule()

    if detailed:
        _label(target, "ОПЕРАЦИИ ЗА СМЕНУ:")
        target.line(f"Продаж (кол-во): {_amount(record, 'total_sales_count')}")
        target.line(f"Сумма продаж: {format_currency(_amount(record, 'total_sales_amount'))}")
        target.line(f"Возвратов (кол-во): {_amount(record, 'total_returns_count')}")
        target.line(f"Сумма возвратов: {format_currency(_amount(record, 'total_returns_amount'))}")
        target.line(f"Долги: {format_currency(_amount(record, 'total_debt_amount'))}")
        target.line(f"Доходы: {format_currency(_amount(record, 'total_income'))}")
        target.line(f"Расходы: {format_currency(_amount(record, 'total_expense'))}")
    else:
        _label(target, "СТАТИСТИКА ПРОДАЖ:")
        target.line(f"Продаж: {_amount(record, 'total_sales_count')}")
        target.line(f"Сумма продаж: {format_currency(_amount(record, 'total_sales_amount'))}")
        target.line(f"Сумма долгов: {format_currency(_amount(record, 'total_debt_amount'))}")
    target.rule()

    target.align("center")
    _label(target, "СПОСОБЫ ОПЛАТЫ")
    target.align("left")
    target.rule()

    for payment in record.get("payments") or []:
        expected = _amount(payment, "expected")
        actual = _amount(payment, "actual")
        difference = parse_amount(actual) - parse_amount(expected)
        target.line(f"{payment.get('payment_method', '')}:")
        target.line(f"  Ожидается: {format_fixed(expected)}")
        target.line(f"  Фактически: {format_fixed(actual)}")
        target.line(f"  Разница: {format_difference(difference)}")
        target.feed(1)

    target.rule()
    _heading(target, "ИТОГИ")
    target.line(f"Всего ожидается: {format_fixed(_amount(record, 'total_expected'))}")
    target.line(f"Всего фактически: {format_fixed(_amount(record, 'total_actual'))}")
    if not detailed:
        target.bold(True)
        target.line(f"Возврат сумма: {format_fixed(_amount(record, 'total_returns_amount'))}")
        target.line(f"Сумма долгов: {format_currency(_amount(record, 'total_debt_amount'))}")
        target.bold(False)
    target.rule()

    if detailed:
        _label(target, "СТАТУС СМЕНЫ:")
        target.line(f"Активна: {_yes_no(record.get('is_active'))}")
        target.line(f"Ожидает подтверждения: {_yes_no(record.get('is_awaiting_approval'))}")
        target.line(f"Подтверждена: {_yes_no(record.get('is_approved'))}")
        if record.get("approved_by"):
            target.line(f"Подтвердил: {record['approved_by']}")
        if record.get("approval_comment"):
            target.line(f"Комментарий одобрения: {record['approval_comment']}")
        target.rule()

    for key, title in (
        ("opening_comment", "Комментарий открытия:"),
        ("closing_comment", "Комментарий закрытия:"),
    ):
        comment = record.get(key)
        if isinstance(comment, str) and comment.strip():
            target.line(title)
            for line in comment.strip().split("\n"):
                target.line(line)
            target.rule()

    target.feed(1)
    target.align("center")
    target.line("Спасибо за работу!")
    target.line(format_date(printed_at))
    target.feed(2)
    target.cut()
    return target
