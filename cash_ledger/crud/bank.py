from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from cash_ledger.exceptions import InsufficientFunds
from cash_ledger.models import (
    BankRegister, BankMovement, BankMovementCategory, MovementDirection,
    RegisterState, RegisterLifecycle
)
from cash_ledger.utils.money import to_money, apply_movement, ZERO
from cash_ledger.utils.periods import day_range, month_range, month_range_of


def get_register(db: Session, register_id: int) -> Optional[BankRegister]:
    return db.query(BankRegister).filter(BankRegister.id == register_id).first()


def exists_any(db: Session) -> bool:
    """True si hay al menos una caja banco en el sistema (cualquier estado)."""
    return db.query(BankRegister.id).first() is not None


def find_register_for_day(db: Session, day: datetime) -> Optional[BankRegister]:
    start, end = day_range(day)
    return db.query(BankRegister).filter(
        BankRegister.date >= start,
        BankRegister.date < end
    ).order_by(BankRegister.id.asc()).first()


def find_open_for_month(db: Session, day: datetime) -> Optional[BankRegister]:
    """Caja banco ABIERTA y activa del mismo mes/año (no del mismo día)."""
    start, end = month_range_of(day)
    return db.query(BankRegister).filter(
        BankRegister.date >= start,
        BankRegister.date < end,
        BankRegister.state == RegisterState.OPEN,
        BankRegister.lifecycle == RegisterLifecycle.ACTIVE
    ).order_by(BankRegister.date.desc()).first()


def find_for_month(db: Session, day: datetime) -> Optional[BankRegister]:
    """Caja banco activa del mes en cualquier estado, la más reciente primero."""
    start, end = month_range_of(day)
    return db.query(BankRegister).filter(
        BankRegister.date >= start,
        BankRegister.date < end,
        BankRegister.lifecycle == RegisterLifecycle.ACTIVE
    ).order_by(BankRegister.state.desc(), BankRegister.date.desc()).first()  # OPEN antes que CLOSED


def find_latest_closed_between(db: Session, start: datetime, end: datetime) -> Optional[BankRegister]:
    return db.query(BankRegister).filter(
        BankRegister.date >= start,
        BankRegister.date < end,
        BankRegister.state == RegisterState.CLOSED,
        BankRegister.lifecycle == RegisterLifecycle.ACTIVE
    ).order_by(BankRegister.date.desc(), BankRegister.id.desc()).first()


def list_registers(db: Session, include_archived: bool = False, state: RegisterState = None):
    q = db.query(BankRegister)
    if not include_archived:
        q = q.filter(BankRegister.lifecycle == RegisterLifecycle.ACTIVE)
    if state is not None:
        q = q.filter(BankRegister.state == state)
    return q.order_by(BankRegister.date.desc(), BankRegister.id.desc()).all()


def list_registers_by_month(db: Session, year: int, month_index: int, state: RegisterState = None):
    start, end = month_range(year, month_index)
    q = db.query(BankRegister).filter(
        BankRegister.date >= start,
        BankRegister.date < end,
        BankRegister.lifecycle == RegisterLifecycle.ACTIVE
    )
    if state is not None:
        q = q.filter(BankRegister.state == state)
    return q.order_by(BankRegister.date.desc()).all()


def list_movements(db: Session, register_id: int = None, newest_first: bool = False):
    q = db.query(BankMovement)
    if register_id is not None:
        q = q.filter(BankMovement.register_id == register_id)
    order = BankMovement.id.desc() if newest_first else BankMovement.id.asc()
    return q.order_by(order).all()


def list_movements_by_month(db: Session, year: int, month_index: int):
    start, end = month_range(year, month_index)
    return db.query(BankMovement).filter(
        BankMovement.date >= start,
        BankMovement.date < end
    ).order_by(BankMovement.id.desc()).all()


def list_unattached_for_day(db: Session, day: datetime) -> List[BankMovement]:
    start, end = day_range(day)
    return db.query(BankMovement).filter(
        BankMovement.register_id.is_(None),
        BankMovement.date >= start,
        BankMovement.date < end
    ).order_by(BankMovement.date.asc(), BankMovement.id.asc()).all()


def apply_to_register(register: BankRegister, movement: BankMovement) -> BankMovement:
    """
    Liga el movimiento a la caja calculando saldo anterior/nuevo.
    La caja banco no acepta saldo negativo: lanza InsufficientFunds sin tocar nada.
    """
    balance_before = to_money(register.current_balance)
    balance_after = apply_movement(balance_before, movement.direction, movement.amount)
    if balance_after < ZERO:
        raise InsufficientFunds(
            f"Caja banco {register.id}: saldo {balance_before} insuficiente para egreso de {movement.amount}"
        )
    movement.register_id = register.id
    movement.balance_before = balance_before
    movement.balance_after = balance_after
    movement.posted_at = datetime.now()
    register.current_balance = balance_after
    return movement


def build_movement(
    direction: MovementDirection,
    category: BankMovementCategory,
    amount,
    description: str,
    date: datetime = None,
    reference: str = None,
    petty_register_id: int = None,
    sale_id: str = None,
    note: str = None,
    user_id: str = None,
    user_name: str = None,
) -> BankMovement:
    return BankMovement(
        date=date or datetime.now(),
        direction=direction,
        category=category,
        description=description,
        amount=to_money(amount),
        reference=reference,
        petty_register_id=petty_register_id,
        sale_id=sale_id,
        note=note,
        user_id=user_id,
        user_name=user_name,
    )


def list_posted_movements(db: Session, register_id: int) -> List[BankMovement]:
    """Movimientos ligados a la caja en el orden en que se aplicaron al saldo."""
    return db.query(BankMovement).filter(
        BankMovement.register_id == register_id
    ).order_by(BankMovement.posted_at.asc(), BankMovement.id.asc()).all()
