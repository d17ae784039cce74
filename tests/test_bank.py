"""Pruebas de la caja mensual (Caja Banco)."""

from datetime import datetime
from decimal import Decimal

import pytest

from cash_ledger.exceptions import (
    DuplicateForPeriod, InsufficientFunds, InvalidMovement, InvalidPeriod,
    InvalidState, RegisterNotFound, RegisterNotOpen
)
from cash_ledger.models import (
    BankMovementCategory, MovementDirection, RegisterLifecycle, RegisterState
)
from cash_ledger.security import Identity

INCOME = MovementDirection.INCOME
EXPENSE = MovementDirection.EXPENSE


def test_month_of_movements_rolls_over_to_next_month(bank, january_bank):
    for direction, amount, category in [
        (INCOME, 500, BankMovementCategory.CLIENT_TRANSFER),
        (INCOME, 200, None),
        (EXPENSE, 300, BankMovementCategory.WORKER_PAYMENT),
        (EXPENSE, 100, None),
    ]:
        bank.register_movement(
            direction, amount, "Movimiento", register_id=january_bank.id, category=category,
            date=datetime(2025, 1, 15),
        )
    assert bank.get(january_bank.id).current_balance == Decimal("1300.00")

    result = bank.close_full_month(2025, 0)

    assert result.closed_register_ids == [january_bank.id]
    assert result.successor_created
    successor = bank.get(result.successor_id)
    assert successor.date == datetime(2025, 2, 1)
    assert successor.initial_balance == Decimal("1300.00")
    assert successor.current_balance == Decimal("1300.00")
    assert successor.state == RegisterState.OPEN
    assert "Enero 2025" in successor.note
    assert bank.get(january_bank.id).state == RegisterState.CLOSED


def test_movement_snapshots_chain(bank, january_bank):
    first = bank.register_movement(INCOME, 500, "Depósito", register_id=january_bank.id)
    second = bank.register_movement(EXPENSE, 200, "Pago", register_id=january_bank.id)

    assert (first.balance_before, first.balance_after) == (Decimal("1000.00"), Decimal("1500.00"))
    assert (second.balance_before, second.balance_after) == (Decimal("1500.00"), Decimal("1300.00"))


def test_expense_beyond_balance_is_rejected_and_nothing_persisted(bank, january_bank):
    with pytest.raises(InsufficientFunds):
        bank.register_movement(EXPENSE, 1000.01, "Pago grande", register_id=january_bank.id)

    assert bank.get(january_bank.id).current_balance == Decimal("1000.00")
    assert bank.movements(january_bank.id) == []


def test_expense_to_exactly_zero_is_allowed(bank, january_bank):
    bank.register_movement(EXPENSE, 1000, "Retiro total", register_id=january_bank.id)
    assert bank.get(january_bank.id).current_balance == Decimal("0.00")


def test_unattached_movement_never_touches_balances(bank, january_bank):
    movement = bank.register_movement(INCOME, 750, "Depósito sin caja")

    assert movement.register_id is None
    assert movement.balance_before is None
    assert movement.balance_after is None
    assert bank.get(january_bank.id).current_balance == Decimal("1000.00")


def test_movement_on_closed_register_is_rejected(bank, january_bank):
    bank.close(january_bank.id)
    with pytest.raises(RegisterNotOpen):
        bank.register_movement(INCOME, 10, "Tarde", register_id=january_bank.id)


def test_movement_on_unknown_register(bank, january_bank):
    with pytest.raises(RegisterNotFound):
        bank.register_movement(INCOME, 10, "Depósito", register_id=9999)


def test_movement_validation(bank, january_bank):
    with pytest.raises(InvalidMovement):
        bank.register_movement(INCOME, -5, "Negativo", register_id=january_bank.id)
    with pytest.raises(InvalidMovement):
        bank.register_movement(INCOME, 5, "   ", register_id=january_bank.id)
    with pytest.raises(InvalidMovement):
        bank.register_movement(
            INCOME, 5, "Categoría cruzada", register_id=january_bank.id,
            category=BankMovementCategory.WORKER_PAYMENT,
        )


def test_settlement_categories_are_reserved(bank, january_bank):
    with pytest.raises(InvalidMovement):
        bank.register_movement(
            INCOME, 5, "Manual", register_id=january_bank.id,
            category=BankMovementCategory.PETTY_CASH_SETTLEMENT,
        )


def test_only_one_open_register_per_month(bank, january_bank):
    with pytest.raises(DuplicateForPeriod):
        bank.open_or_update(datetime(2025, 1, 20), initial_balance=5)


def test_closed_register_can_be_created_in_month_with_open_one(bank, january_bank):
    register = bank.open_or_update(datetime(2025, 1, 20), initial_balance=5, state=RegisterState.CLOSED)
    assert register.state == RegisterState.CLOSED
    assert register.closed_at is not None


def test_same_day_open_is_an_upsert(bank, january_bank):
    updated = bank.open_or_update(
        datetime(2025, 1, 1, 15, 30), initial_balance=2000, note="Corregida",
        owner=Identity(user_id="u-2", user_name="Contadora"),
    )

    assert updated.id == january_bank.id
    assert updated.initial_balance == Decimal("2000.00")
    assert updated.current_balance == Decimal("2000.00")
    assert updated.note == "Corregida"
    assert updated.user_name == "Contadora"
    assert len(bank.list_all()) == 1


def test_upsert_keeps_balance_once_register_has_movements(bank, january_bank):
    bank.register_movement(INCOME, 100, "Depósito", register_id=january_bank.id)
    updated = bank.open_or_update(datetime(2025, 1, 1), initial_balance=5)

    assert updated.initial_balance == Decimal("1000.00")
    assert updated.current_balance == Decimal("1100.00")


def test_upsert_can_close_but_not_reopen(bank, january_bank):
    closed = bank.open_or_update(datetime(2025, 1, 1), state=RegisterState.CLOSED)
    assert closed.state == RegisterState.CLOSED

    with pytest.raises(InvalidState):
        bank.open_or_update(datetime(2025, 1, 1), state=RegisterState.OPEN)


def test_initial_balance_inherited_from_previous_month(bank, january_bank):
    bank.register_movement(INCOME, 250, "Depósito", register_id=january_bank.id)
    bank.close(january_bank.id)

    february = bank.open_or_update(datetime(2025, 2, 3))

    assert february.initial_balance == Decimal("1250.00")


def test_inheritance_ignores_archived_registers(bank, january_bank):
    bank.close(january_bank.id)
    bank.soft_delete(january_bank.id)
    assert bank.open_or_update(datetime(2025, 2, 1)).initial_balance == Decimal("0.00")


def test_inheritance_defaults_to_zero(bank):
    assert bank.open_or_update(datetime(2025, 6, 1)).initial_balance == Decimal("0.00")


def test_explicit_initial_balance_wins(bank, january_bank):
    bank.close(january_bank.id)
    assert bank.open_or_update(datetime(2025, 2, 1), initial_balance=42).initial_balance == Decimal("42.00")


def test_close_with_final_balance_appends_adjustment(bank, january_bank):
    closed = bank.close(january_bank.id, final_balance=Decimal("950"))

    assert closed.current_balance == Decimal("950.00")
    assert closed.state == RegisterState.CLOSED
    adjustment = bank.movements(january_bank.id)[0]
    assert adjustment.description == "Ajuste de cierre"
    assert adjustment.direction == EXPENSE
    assert adjustment.amount == Decimal("50.00")


def test_close_twice_is_rejected(bank, january_bank):
    bank.close(january_bank.id)
    with pytest.raises(RegisterNotOpen):
        bank.close(january_bank.id)


def test_close_full_month_is_idempotent(bank, january_bank):
    first = bank.close_full_month(2025, 0)
    second = bank.close_full_month(2025, 0)

    assert first.successor_created
    assert second.closed_register_ids == []
    assert second.successor_id is None
    assert len(bank.list_by_month(2025, 1)) == 1


def test_close_full_month_does_not_duplicate_existing_successor(bank, january_bank):
    existing = bank.open_or_update(datetime(2025, 2, 1), initial_balance=7, state=RegisterState.CLOSED)

    result = bank.close_full_month(2025, 0)

    assert result.successor_id == existing.id
    assert not result.successor_created
    assert len(bank.list_by_month(2025, 1)) == 1


def test_close_full_month_rejects_bad_month(bank):
    with pytest.raises(InvalidPeriod):
        bank.close_full_month(2025, 12)


def test_tick_does_nothing_within_the_month(bank, january_bank):
    assert bank.tick(today=datetime(2025, 1, 31, 23, 59)) == []
    assert bank.get(january_bank.id).is_open


def test_tick_closes_expired_month_once(bank, january_bank):
    results = bank.tick(today=datetime(2025, 2, 1, 0, 5))

    assert len(results) == 1
    assert results[0].closed_register_ids == [january_bank.id]
    assert bank.tick(today=datetime(2025, 2, 1, 0, 10)) == []
    assert [r.date for r in bank.list_active()] == [datetime(2025, 2, 1), datetime(2025, 1, 1)]


def test_tick_catches_up_several_months(bank, january_bank):
    results = bank.tick(today=datetime(2025, 4, 10))

    assert [(r.year, r.month_index) for r in results] == [(2025, 0), (2025, 1), (2025, 2)]
    april = bank.find_open_for_month(datetime(2025, 4, 10))
    assert april.date == datetime(2025, 4, 1)
    assert april.initial_balance == Decimal("1000.00")


def test_client_transfer_is_unattached_income(bank, january_bank):
    movement = bank.record_client_transfer(Decimal("320.50"), "TRX-991", "V-1001")

    assert movement.register_id is None
    assert movement.category == BankMovementCategory.CLIENT_TRANSFER
    assert movement.reference == "TRX-991"
    assert movement.sale_id == "V-1001"
    assert "V-1001" in movement.description


def test_associate_unattached_binds_same_day_movements(bank):
    today = bank.open_or_update(initial_balance=100)
    transfer = bank.record_client_transfer(50, "TRX-1", "V-1")
    too_big = bank.register_movement(EXPENSE, 500, "Pago sin fondos")
    other_day = bank.register_movement(INCOME, 10, "Ayer", date=datetime(2020, 1, 1))

    attached = bank.associate_unattached(today.id)

    assert [m.id for m in attached] == [transfer.id]
    assert bank.get(today.id).current_balance == Decimal("150.00")
    assert too_big.register_id is None
    assert other_day.register_id is None


def test_soft_delete_requires_closed_register(bank, january_bank):
    with pytest.raises(InvalidState):
        bank.soft_delete(january_bank.id)


def test_soft_delete_excludes_from_active_listings(bank, january_bank):
    bank.close(january_bank.id)
    archived = bank.soft_delete(january_bank.id)

    assert archived.lifecycle == RegisterLifecycle.ARCHIVED
    assert bank.list_active() == []
    assert bank.list_by_month(2025, 0) == []
    assert [r.id for r in bank.list_all()] == [january_bank.id]
    assert bank.exists_any()

    assert bank.reactivate(january_bank.id).is_active


def test_archived_register_keeps_its_movements(bank, january_bank):
    bank.register_movement(INCOME, 500, "Depósito", register_id=january_bank.id)
    bank.register_movement(EXPENSE, 200, "Pago", register_id=january_bank.id)
    bank.close(january_bank.id)

    bank.soft_delete(january_bank.id)

    assert [m.description for m in bank.movements(january_bank.id)] == ["Pago", "Depósito"]


def test_summary_breaks_down_by_category(bank, january_bank):
    bank.register_movement(INCOME, 500, "Transferencia", register_id=january_bank.id,
                           category=BankMovementCategory.CLIENT_TRANSFER)
    bank.register_movement(INCOME, 20, "Intereses", register_id=january_bank.id)
    bank.register_movement(EXPENSE, 300, "Sueldo", register_id=january_bank.id,
                           category=BankMovementCategory.WORKER_PAYMENT)

    summary = bank.summary(january_bank.id)

    assert summary.total_income == Decimal("520.00")
    assert summary.total_expense == Decimal("300.00")
    assert summary.final_balance == Decimal("1220.00")
    assert summary.movement_count == 3
    assert summary.income_by_category.client_transfers == Decimal("500.00")
    assert summary.income_by_category.other_income == Decimal("20.00")
    assert summary.expense_by_category.worker_payments == Decimal("300.00")
