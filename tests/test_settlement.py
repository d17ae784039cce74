"""Pruebas de la liquidación de caja chica en caja banco."""

from datetime import datetime
from decimal import Decimal

import pytest

from cash_ledger.exceptions import InsufficientFunds, InvalidState
from cash_ledger.models import (
    BankMovementCategory, MovementDirection, RegisterState, SettlementStatus
)
from cash_ledger.services.scheduler import run_month_close_tick

JAN_10 = datetime(2025, 1, 10)


def test_settle_is_idempotent(petty, bank, bridge, january_bank):
    register = petty.open(JAN_10, initial_balance=80)
    petty.close(register.id)

    again = bridge.settle(register.id)

    assert again.status == SettlementStatus.SETTLED
    assert again.amount == Decimal("80.00")
    assert bank.get(january_bank.id).current_balance == Decimal("1080.00")
    assert len(bank.movements(january_bank.id)) == 1


def test_open_register_cannot_be_settled(petty, bridge, january_bank):
    register = petty.open(JAN_10)
    with pytest.raises(InvalidState):
        bridge.settle(register.id)


def test_archived_register_cannot_be_settled(petty, bridge, db, january_bank):
    register = petty.open(JAN_10)
    petty.close(register.id)
    petty.soft_delete(register.id)
    with pytest.raises(InvalidState):
        bridge.settle(register.id)


def test_settlement_lands_on_closed_bank_register(petty, bank, january_bank):
    register = petty.open(JAN_10, initial_balance=45)
    bank.close(january_bank.id)

    closed, result = petty.close(register.id)

    assert result.ok
    assert closed.settlement_status == SettlementStatus.SETTLED
    assert bank.get(january_bank.id).current_balance == Decimal("1045.00")


def test_missing_bank_for_month_fails_durably_and_is_retried(petty, bank, bridge, january_bank):
    march_day = datetime(2025, 3, 4)
    register = petty.open(march_day, initial_balance=60)

    closed, result = petty.close(register.id)

    assert closed.state == RegisterState.CLOSED
    assert result.status == SettlementStatus.FAILED
    assert not result.ok
    assert result.error
    assert closed.settlement_status == SettlementStatus.FAILED
    assert closed.settlement_error == result.error

    march = bank.open_or_update(datetime(2025, 3, 1), initial_balance=10)
    results = bridge.retry_pending()

    assert [r.petty_register_id for r in results] == [register.id]
    assert results[0].status == SettlementStatus.SETTLED
    assert results[0].bank_register_id == march.id
    assert bank.get(march.id).current_balance == Decimal("70.00")
    refreshed = petty.get(register.id)
    assert refreshed.bank_register_id == march.id
    assert refreshed.settlement_error is None
    assert bridge.retry_pending() == []


def test_archived_bank_register_fails_settlement(petty, bank, january_bank):
    register = petty.open(JAN_10, initial_balance=15)
    bank.close(january_bank.id)
    bank.soft_delete(january_bank.id)

    _, result = petty.close(register.id)

    assert result.status == SettlementStatus.FAILED
    assert "desactivada" in result.error


def test_pending_marker_is_picked_up_by_retry(petty, bank, bridge, db, january_bank):
    register = petty.open(JAN_10, initial_balance=25)
    # Cierre guardado sin llegar a escribir en caja banco
    register.state = RegisterState.CLOSED
    register.settlement_status = SettlementStatus.PENDING
    db.commit()

    results = bridge.retry_pending()

    assert [r.status for r in results] == [SettlementStatus.SETTLED]
    assert bank.get(january_bank.id).current_balance == Decimal("1025.00")


def test_reverse_requires_settled_register(petty, bridge, january_bank):
    register = petty.open(JAN_10)
    with pytest.raises(InvalidState):
        bridge.reverse(register.id)


def test_reverse_posts_expense_and_marks_reversed(petty, bank, bridge, january_bank):
    register = petty.open(JAN_10, initial_balance=120)
    petty.close(register.id)

    result = bridge.reverse(register.id)

    assert result.status == SettlementStatus.REVERSED
    assert result.amount == Decimal("120.00")
    movement = bank.movements(january_bank.id)[0]
    assert movement.id == result.movement_id
    assert movement.direction == MovementDirection.EXPENSE
    assert movement.category == BankMovementCategory.PETTY_CASH_REVERSAL
    assert bank.get(january_bank.id).current_balance == Decimal("1000.00")


def test_reverse_that_would_overdraw_is_rejected(petty, bank, bridge, january_bank):
    register = petty.open(JAN_10, initial_balance=120)
    petty.close(register.id)
    bank.register_movement(MovementDirection.EXPENSE, 1100, "Nómina", register_id=january_bank.id)

    with pytest.raises(InsufficientFunds):
        bridge.reverse(register.id)


def test_scheduled_tick_closes_months_and_retries(session_factory, db, petty, bank, january_bank):
    register = petty.open(datetime(2025, 3, 4), initial_balance=5)
    petty.close(register.id)
    db.close()

    closed, retried = run_month_close_tick(session_factory)

    # Enero a marzo cerrados hasta hoy; la caja de marzo recibe la liquidación pendiente
    assert len(closed) >= 3
    assert [r.status for r in retried] == [SettlementStatus.SETTLED]
