"""Pruebas de utilidades de periodos y aritmética de montos."""

from datetime import date, datetime
from decimal import Decimal

from cash_ledger.models import MovementDirection
from cash_ledger.utils.money import apply_movement, signed_amount, to_money
from cash_ledger.utils.periods import (
    add_one_month, day_range, month_name, month_range, month_start,
    previous_month_range, same_month, start_of_day
)


def test_start_of_day_drops_time():
    assert start_of_day(datetime(2025, 3, 14, 17, 45, 12)) == datetime(2025, 3, 14)


def test_start_of_day_accepts_date():
    assert start_of_day(date(2025, 3, 14)) == datetime(2025, 3, 14)


def test_day_range_is_half_open():
    start, end = day_range(datetime(2025, 12, 31, 23, 59))
    assert start == datetime(2025, 12, 31)
    assert end == datetime(2026, 1, 1)


def test_month_index_is_zero_based():
    assert month_start(2025, 0) == datetime(2025, 1, 1)
    assert month_start(2025, 11) == datetime(2025, 12, 1)


def test_month_start_overflows_into_next_and_previous_year():
    assert month_start(2025, 12) == datetime(2026, 1, 1)
    assert month_start(2025, -1) == datetime(2024, 12, 1)


def test_month_range_december():
    assert month_range(2025, 11) == (datetime(2025, 12, 1), datetime(2026, 1, 1))


def test_previous_month_range_from_january():
    assert previous_month_range(datetime(2025, 1, 15)) == (datetime(2024, 12, 1), datetime(2025, 1, 1))


def test_add_one_month_clamps_day():
    assert add_one_month(datetime(2025, 1, 31)) == datetime(2025, 2, 28)
    assert add_one_month(datetime(2024, 12, 15, 8, 30)) == datetime(2025, 1, 15, 8, 30)


def test_same_month():
    assert same_month(datetime(2025, 2, 1), datetime(2025, 2, 28, 23))
    assert not same_month(datetime(2025, 2, 1), datetime(2024, 2, 1))


def test_month_name():
    assert month_name(0) == "Enero"
    assert month_name(11) == "Diciembre"


def test_to_money_rounds_half_up_without_float_noise():
    assert to_money(0.1 + 0.2) == Decimal("0.30")
    assert to_money("2.675") == Decimal("2.68")
    assert to_money(None) == Decimal("0.00")


def test_apply_movement_has_no_floor():
    assert apply_movement(Decimal("50"), MovementDirection.EXPENSE, 80) == Decimal("-30.00")
    assert apply_movement(Decimal("50"), MovementDirection.INCOME, 80) == Decimal("130.00")


def test_signed_amount():
    assert signed_amount(MovementDirection.EXPENSE, 10) == Decimal("-10.00")
    assert signed_amount(MovementDirection.INCOME, 10) == Decimal("10.00")
