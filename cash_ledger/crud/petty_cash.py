from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from cash_ledger.models import (
    PettyCashRegister, PettyCashMovement, MovementDirection,
    RegisterState, RegisterLifecycle, SettlementStatus
)
from cash_ledger.utils.money import to_money, apply_movement, ZERO
from cash_ledger.utils.periods import day_range, month_range


def get_register(db: Session, register_id: int) -> Optional[PettyCashRegister]:
    return db.query(PettyCashRegister).filter(PettyCashRegister.id == register_id).first()


def find_register_for_day(db: Session, day: datetime) -> Optional[PettyCashRegister]:
    """Cualquier caja del día, sin importar estado ni borrado lógico."""
    start, end = day_range(day)
    return db.query(PettyCashRegister).filter(
        PettyCashRegister.date >= start,
        PettyCashRegister.date < end
    ).first()


def list_registers(db: Session, include_archived: bool = False, state: RegisterState = None):
    q = db.query(PettyCashRegister)
    if not include_archived:
        q = q.filter(PettyCashRegister.lifecycle == RegisterLifecycle.ACTIVE)
    if state is not None:
        q = q.filter(PettyCashRegister.state == state)
    return q.order_by(PettyCashRegister.date.desc(), PettyCashRegister.id.desc()).all()


def list_registers_by_month(db: Session, year: int, month_index: int):
    start, end = month_range(year, month_index)
    return db.query(PettyCashRegister).filter(
        PettyCashRegister.date >= start,
        PettyCashRegister.date < end,
        PettyCashRegister.lifecycle == RegisterLifecycle.ACTIVE
    ).order_by(PettyCashRegister.date.desc()).all()


def list_settled_for_bank(db: Session, bank_register_id: int) -> List[PettyCashRegister]:
    """Cajas chicas activas, cerradas y liquidadas en la caja banco indicada."""
    return db.query(PettyCashRegister).filter(
        PettyCashRegister.bank_register_id == bank_register_id,
        PettyCashRegister.state == RegisterState.CLOSED,
        PettyCashRegister.lifecycle == RegisterLifecycle.ACTIVE,
        PettyCashRegister.settlement_status == SettlementStatus.SETTLED
    ).all()


def list_pending_settlement(db: Session) -> List[PettyCashRegister]:
    return db.query(PettyCashRegister).filter(
        PettyCashRegister.state == RegisterState.CLOSED,
        PettyCashRegister.lifecycle == RegisterLifecycle.ACTIVE,
        PettyCashRegister.settlement_status.in_([SettlementStatus.PENDING, SettlementStatus.FAILED])
    ).order_by(PettyCashRegister.date.asc()).all()


def list_movements(db: Session, register_id: int, newest_first: bool = False):
    q = db.query(PettyCashMovement).filter(PettyCashMovement.register_id == register_id)
    order = PettyCashMovement.id.desc() if newest_first else PettyCashMovement.id.asc()
    return q.order_by(order).all()


def add_movement(
    db: Session,
    register: PettyCashRegister,
    direction: MovementDirection,
    amount,
    description: str,
    date: datetime = None,
    reference: str = None,
    note: str = None,
    user_id: str = None,
    user_name: str = None,
) -> PettyCashMovement:
    """
    Agrega el movimiento y mueve el saldo de la caja. El efectivo nunca
    queda negativo: un egreso mayor al saldo deja la caja en cero.
    No hace commit.
    """
    balance_before = to_money(register.current_balance)
    balance_after = max(ZERO, apply_movement(balance_before, direction, amount))

    movement = PettyCashMovement(
        register_id=register.id,
        date=date or datetime.now(),
        direction=direction,
        description=description,
        amount=to_money(amount),
        balance_before=balance_before,
        balance_after=balance_after,
        reference=reference,
        note=note,
        user_id=user_id,
        user_name=user_name,
    )
    db.add(movement)
    register.current_balance = balance_after
    return movement


def find_active_register_for_day(db: Session, day: datetime) -> Optional[PettyCashRegister]:
    start, end = day_range(day)
    return db.query(PettyCashRegister).filter(
        PettyCashRegister.date >= start,
        PettyCashRegister.date < end,
        PettyCashRegister.lifecycle == RegisterLifecycle.ACTIVE
    ).first()
