"""
Recalculo y verificación de saldos.

El saldo guardado de cada caja se puede reconstruir desde su libro de
movimientos. Aquí se compara, se reporta y opcionalmente se repara.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from cash_ledger.crud import bank as bank_crud
from cash_ledger.crud import petty_cash as petty_crud
from cash_ledger.exceptions import RegisterNotFound
from cash_ledger.models import (
    BankMovement, BankMovementCategory, BankRegister, MovementDirection,
    PettyCashRegister, RegisterLifecycle, RegisterState, SettlementStatus
)
from cash_ledger.schemas.cash import LedgerTotals
from cash_ledger.utils.money import apply_movement, signed_amount, to_money, ZERO
from .base import commit

logger = logging.getLogger(__name__)


@dataclass
class BalanceReport:
    bank_register_id: int
    stored_balance: Decimal
    from_movements: Decimal
    petty_closed_total: Decimal
    settled_total: Decimal
    unsettled_petty_ids: List[int] = field(default_factory=list)
    chain_break: Optional[int] = None
    repaired: bool = False

    @property
    def consistent(self) -> bool:
        return (
            self.stored_balance == self.from_movements
            and self.petty_closed_total == self.settled_total
            and self.chain_break is None
        )


def verify_register_chain(movements, initial_balance, floor_at_zero: bool = False) -> Optional[int]:
    """
    Índice del primer movimiento que rompe la cadena de saldos, o None.

    Cada movimiento debe partir del saldo en que quedó el anterior (el primero,
    del saldo inicial) y su saldo nuevo debe ser el anterior +/- el monto.
    La caja chica usa piso en cero.
    """
    expected_before = to_money(initial_balance)
    for index, movement in enumerate(movements):
        before = to_money(movement.balance_before)
        if before != expected_before:
            return index
        after = apply_movement(before, movement.direction, movement.amount)
        if floor_at_zero:
            after = max(ZERO, after)
        if to_money(movement.balance_after) != after:
            return index
        expected_before = after
    return None


def recompute_bank_balance(db: Session, bank_register_id: int, repair: bool = False) -> BalanceReport:
    register = bank_crud.get_register(db, bank_register_id)
    if register is None:
        raise RegisterNotFound(f"Caja banco {bank_register_id} no encontrada")

    movements = bank_crud.list_posted_movements(db, register.id)
    from_movements = to_money(register.initial_balance) + sum(
        (signed_amount(m.direction, m.amount) for m in movements), ZERO
    )

    settled_total = ZERO
    for m in movements:
        if m.category == BankMovementCategory.PETTY_CASH_SETTLEMENT:
            settled_total += to_money(m.amount)
        elif m.category == BankMovementCategory.PETTY_CASH_REVERSAL:
            settled_total -= to_money(m.amount)

    petty_closed_total = sum(
        (to_money(p.current_balance) for p in petty_crud.list_settled_for_bank(db, register.id)), ZERO
    )
    unsettled = db.query(PettyCashRegister.id).filter(
        PettyCashRegister.bank_register_id == register.id,
        PettyCashRegister.state == RegisterState.CLOSED,
        PettyCashRegister.lifecycle == RegisterLifecycle.ACTIVE,
        PettyCashRegister.settlement_status != SettlementStatus.SETTLED
    ).order_by(PettyCashRegister.id.asc()).all()

    report = BalanceReport(
        bank_register_id=register.id,
        stored_balance=to_money(register.current_balance),
        from_movements=from_movements,
        petty_closed_total=petty_closed_total,
        settled_total=settled_total,
        unsettled_petty_ids=[row.id for row in unsettled],
        chain_break=verify_register_chain(movements, register.initial_balance),
    )

    if report.stored_balance != report.from_movements:
        logger.warning(
            "Caja banco %s: saldo guardado %s, según movimientos %s",
            register.id, report.stored_balance, report.from_movements,
        )
        if repair:
            register.current_balance = from_movements
            commit(db)
            report.repaired = True
            logger.info("Saldo de caja banco %s reparado a %s", register.id, from_movements)
    if report.chain_break is not None:
        logger.warning("Caja banco %s: cadena de saldos rota en el movimiento #%d", register.id, report.chain_break)
    return report


def global_totals(db: Session) -> LedgerTotals:
    """Totales de cajas activas. Liquidaciones y reversos no se cuentan dos veces."""
    total_bank_registers = db.query(BankRegister).filter(
        BankRegister.lifecycle == RegisterLifecycle.ACTIVE
    ).count()

    closed_petty = db.query(PettyCashRegister).filter(
        PettyCashRegister.state == RegisterState.CLOSED,
        PettyCashRegister.lifecycle == RegisterLifecycle.ACTIVE
    ).all()
    total_petty_closed = sum((to_money(p.current_balance) for p in closed_petty), ZERO)

    # Movimientos sin caja (transferencias de clientes) también cuentan
    movements = db.query(BankMovement).outerjoin(BankRegister).filter(
        or_(
            BankMovement.register_id.is_(None),
            BankRegister.lifecycle == RegisterLifecycle.ACTIVE,
        ),
        or_(
            BankMovement.category.is_(None),
            BankMovement.category.notin_([
                BankMovementCategory.PETTY_CASH_SETTLEMENT,
                BankMovementCategory.PETTY_CASH_REVERSAL,
            ]),
        )
    ).all()
    total_bank_income = sum(
        (to_money(m.amount) for m in movements if m.direction == MovementDirection.INCOME), ZERO
    )
    total_bank_expense = sum(
        (to_money(m.amount) for m in movements if m.direction == MovementDirection.EXPENSE), ZERO
    )

    return LedgerTotals(
        total_bank_registers=total_bank_registers,
        total_petty_closed=total_petty_closed,
        total_bank_income=total_bank_income,
        total_income=total_petty_closed + total_bank_income,
        total_bank_expense=total_bank_expense,
    )
