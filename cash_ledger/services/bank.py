"""
Caja Banco: ciclo de vida mensual.

- Apertura por día con upsert (si ya hay caja ese día se actualiza).
- Saldo inicial heredado del último cierre del mes anterior.
- Cierre de mes completo con apertura automática del mes siguiente.
- `tick()` explícito para cerrar meses vencidos (lo invoca el scheduler).
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from cash_ledger.crud import bank as bank_crud
from cash_ledger.exceptions import (
    DuplicateForPeriod, InvalidMovement, InvalidPeriod, InvalidState,
    RegisterNotFound, RegisterNotOpen, InsufficientFunds
)
from cash_ledger.models import (
    BankRegister, BankMovement, BankMovementCategory, MovementDirection,
    RegisterState, RegisterLifecycle
)
from cash_ledger.schemas.bank import BankSummary, IncomeByCategory, ExpenseByCategory
from cash_ledger.security import Identity
from cash_ledger.utils.money import to_money, ZERO
from cash_ledger.utils.periods import (
    start_of_day, month_start, previous_month_range, add_one_month, same_month, month_name
)
from .base import commit, resolve_owner

logger = logging.getLogger(__name__)

INCOME_CATEGORIES = {
    BankMovementCategory.PETTY_CASH_SETTLEMENT,
    BankMovementCategory.CLIENT_TRANSFER,
    BankMovementCategory.OTHER_INCOME,
}
EXPENSE_CATEGORIES = {
    BankMovementCategory.PETTY_CASH_REVERSAL,
    BankMovementCategory.WORKER_PAYMENT,
    BankMovementCategory.OTHER_EXPENSE,
}
# Solo el puente de liquidación escribe estas categorías
SETTLEMENT_CATEGORIES = {
    BankMovementCategory.PETTY_CASH_SETTLEMENT,
    BankMovementCategory.PETTY_CASH_REVERSAL,
}


@dataclass
class MonthCloseResult:
    year: int
    month_index: int
    closed_register_ids: List[int] = field(default_factory=list)
    successor_id: Optional[int] = None
    successor_created: bool = False


class BankRegisterManager:
    def __init__(self, db: Session):
        self.db = db

    # --- Consultas ---

    def get(self, register_id: int) -> BankRegister:
        register = bank_crud.get_register(self.db, register_id)
        if register is None:
            raise RegisterNotFound(f"Caja banco {register_id} no encontrada")
        return register

    def exists_any(self) -> bool:
        return bank_crud.exists_any(self.db)

    def find_open_for_month(self, day: datetime) -> Optional[BankRegister]:
        return bank_crud.find_open_for_month(self.db, start_of_day(day))

    def list_active(self):
        return bank_crud.list_registers(self.db)

    def list_all(self):
        """Incluye las desactivadas (auditoría)."""
        return bank_crud.list_registers(self.db, include_archived=True)

    def list_by_month(self, year: int, month_index: int):
        _check_month_index(month_index)
        return bank_crud.list_registers_by_month(self.db, year, month_index)

    def movements(self, register_id: int = None):
        if register_id is not None:
            self.get(register_id)
        return bank_crud.list_movements(self.db, register_id, newest_first=True)

    def movements_by_month(self, year: int, month_index: int):
        _check_month_index(month_index)
        return bank_crud.list_movements_by_month(self.db, year, month_index)

    # --- Apertura / actualización ---

    def open_or_update(
        self,
        date: datetime = None,
        initial_balance=None,
        state: RegisterState = None,
        owner: Identity = None,
        note: str = None,
    ) -> BankRegister:
        owner = resolve_owner(owner)
        day = start_of_day(date)

        # 1. Si ya existe caja para ese día, se actualiza (upsert)
        existing = bank_crud.find_register_for_day(self.db, day)
        if existing:
            return self._update_existing(existing, initial_balance, state, owner, note)

        # 2. Solo una caja ABIERTA por mes
        target_state = state or RegisterState.OPEN
        if target_state == RegisterState.OPEN:
            open_same_month = bank_crud.find_open_for_month(self.db, day)
            if open_same_month:
                raise DuplicateForPeriod(
                    f"Ya hay una caja banco abierta ({open_same_month.id}) en {day:%m/%Y}",
                    user_message="Ya existe una Caja Banco abierta para este mes. Ciérrela antes de abrir otra.",
                )

        # 3. Saldo inicial: explícito > cierre del mes anterior > 0
        balance = self._resolve_initial_balance(day, initial_balance)

        register = BankRegister(
            date=day,
            initial_balance=balance,
            current_balance=balance,
            state=target_state,
            lifecycle=RegisterLifecycle.ACTIVE,
            user_id=owner.user_id,
            user_name=owner.user_name,
            note=note or "",
            closed_at=datetime.now() if target_state == RegisterState.CLOSED else None,
        )
        self.db.add(register)
        commit(self.db)
        self.db.refresh(register)
        logger.info("Caja banco %s abierta para %s con saldo inicial %s", register.id, day.date(), balance)
        return register

    def _resolve_initial_balance(self, day: datetime, initial_balance):
        if initial_balance is not None:
            balance = to_money(initial_balance)
            if balance < ZERO:
                raise InvalidMovement(f"Saldo inicial negativo: {balance}")
            return balance

        start, end = previous_month_range(day)
        previous = bank_crud.find_latest_closed_between(self.db, start, end)
        if previous:
            logger.info("Caja banco hereda saldo %s del cierre %s", previous.current_balance, previous.id)
            return to_money(previous.current_balance)
        return ZERO

    def _update_existing(self, register: BankRegister, initial_balance, state, owner: Identity, note):
        if note is not None:
            register.note = note
        if owner.user_name:
            register.user_name = owner.user_name

        if initial_balance is not None:
            balance = to_money(initial_balance)
            if balance < ZERO:
                raise InvalidMovement(f"Saldo inicial negativo: {balance}")
            if bank_crud.list_movements(self.db, register.id):
                # Con movimientos el saldo es la suma del libro, no se pisa
                logger.warning(
                    "Caja banco %s ya tiene movimientos; se ignora el nuevo saldo inicial %s",
                    register.id, balance,
                )
            else:
                register.initial_balance = balance
                register.current_balance = balance

        if state == RegisterState.CLOSED and register.is_open:
            register.state = RegisterState.CLOSED
            register.closed_at = datetime.now()
        elif state == RegisterState.OPEN and not register.is_open:
            raise InvalidState(
                f"Caja banco {register.id} ya está cerrada",
                user_message="Una caja banco cerrada no puede volver a abrirse.",
            )

        commit(self.db)
        self.db.refresh(register)
        logger.info("Caja banco %s actualizada (upsert del %s)", register.id, register.date.date())
        return register

    # --- Movimientos ---

    def register_movement(
        self,
        direction: MovementDirection,
        amount,
        description: str,
        register_id: int = None,
        category: BankMovementCategory = None,
        date: datetime = None,
        reference: str = None,
        sale_id: str = None,
        note: str = None,
        owner: Identity = None,
    ) -> BankMovement:
        owner = resolve_owner(owner)
        category = category or (
            BankMovementCategory.OTHER_INCOME
            if direction == MovementDirection.INCOME
            else BankMovementCategory.OTHER_EXPENSE
        )
        _validate_movement(direction, category, amount, description)
        if category in SETTLEMENT_CATEGORIES:
            raise InvalidMovement(
                f"Categoría {category.value} reservada",
                user_message="Las liquidaciones de caja chica se registran al cerrar la caja chica.",
            )

        movement = bank_crud.build_movement(
            direction, category, amount, description,
            date=date, reference=reference, sale_id=sale_id, note=note,
            user_id=owner.user_id, user_name=owner.user_name,
        )

        if register_id is not None:
            register = self.get(register_id)
            self.post_to_register(register, movement)
        else:
            logger.info("Movimiento banco sin caja asignada: %s %s", direction.value, movement.amount)

        self.db.add(movement)
        commit(self.db)
        self.db.refresh(movement)
        return movement

    def post_to_register(self, register: BankRegister, movement: BankMovement, allow_closed: bool = False):
        """Aplica el movimiento a la caja (sin commit). Las liquidaciones pueden caer en caja cerrada."""
        if not register.is_open and not allow_closed:
            raise RegisterNotOpen(f"Caja banco {register.id} no está abierta")
        return bank_crud.apply_to_register(register, movement)

    def record_client_transfer(self, amount, transfer_code: str, sale_id: str, owner: Identity = None):
        """Transferencia de cliente por una venta. Queda sin caja hasta la asociación."""
        return self.register_movement(
            MovementDirection.INCOME,
            amount,
            f"Transferencia de cliente - Venta #{sale_id}",
            category=BankMovementCategory.CLIENT_TRANSFER,
            reference=transfer_code,
            sale_id=sale_id,
            owner=owner,
        )

    def associate_unattached(self, register_id: int) -> List[BankMovement]:
        """
        Liga a la caja los movimientos sin caja del mismo día de apertura,
        del más antiguo al más nuevo. Los egresos sin saldo quedan pendientes.
        """
        register = self.get(register_id)
        if not register.is_open:
            raise RegisterNotOpen(f"Caja banco {register.id} no está abierta")

        attached = []
        for movement in bank_crud.list_unattached_for_day(self.db, register.date):
            try:
                bank_crud.apply_to_register(register, movement)
                attached.append(movement)
            except InsufficientFunds as e:
                logger.warning("Movimiento %s queda sin asociar: %s", movement.id, e.message)

        commit(self.db)
        logger.info("%d movimientos asociados a caja banco %s", len(attached), register.id)
        return attached

    # --- Cierre ---

    def close(self, register_id: int, final_balance=None, owner: Identity = None) -> BankRegister:
        register = self.get(register_id)
        if not register.is_open:
            raise RegisterNotOpen(f"Caja banco {register.id} ya está cerrada")
        if final_balance is not None:
            self._adjust_to(register, final_balance, resolve_owner(owner))
        register.state = RegisterState.CLOSED
        register.closed_at = datetime.now()
        commit(self.db)
        self.db.refresh(register)
        logger.info("Caja banco %s cerrada con saldo %s", register.id, register.current_balance)
        return register

    def _adjust_to(self, register: BankRegister, final_balance, owner: Identity):
        final = to_money(final_balance)
        if final < ZERO:
            raise InvalidMovement(f"Saldo final negativo: {final}")
        diff = final - to_money(register.current_balance)
        if diff == ZERO:
            return
        direction = MovementDirection.INCOME if diff > ZERO else MovementDirection.EXPENSE
        category = (
            BankMovementCategory.OTHER_INCOME if diff > ZERO else BankMovementCategory.OTHER_EXPENSE
        )
        movement = bank_crud.build_movement(
            direction, category, abs(diff), "Ajuste de cierre",
            user_id=owner.user_id, user_name=owner.user_name,
        )
        bank_crud.apply_to_register(register, movement)
        self.db.add(movement)

    def close_full_month(self, year: int, month_index: int, owner: Identity = None) -> MonthCloseResult:
        """
        Cierra todas las cajas ABIERTAS del mes (base 0) conservando su saldo y
        abre, una sola vez, la caja del día 1 del mes siguiente con ese saldo.
        """
        _check_month_index(month_index)
        owner = resolve_owner(owner)
        result = MonthCloseResult(year=year, month_index=month_index)

        open_registers = bank_crud.list_registers_by_month(
            self.db, year, month_index, state=RegisterState.OPEN
        )
        if not open_registers:
            logger.info("Sin cajas banco abiertas en %s %s", month_name(month_index), year)
            return result

        # 1. Cerrar todas las del mes
        now = datetime.now()
        for register in open_registers:
            register.state = RegisterState.CLOSED
            register.closed_at = now
            result.closed_register_ids.append(register.id)
        commit(self.db)

        # 2. La más reciente define el saldo que pasa al mes siguiente
        final_balance = to_money(open_registers[0].current_balance)
        successor_day = month_start(year, month_index + 1)

        existing = bank_crud.find_register_for_day(self.db, successor_day)
        if existing:
            result.successor_id = existing.id
            logger.info("Ya existe caja banco %s para %s; no se crea otra", existing.id, successor_day.date())
            return result

        open_next = bank_crud.find_open_for_month(self.db, successor_day)
        if open_next:
            result.successor_id = open_next.id
            logger.warning(
                "El mes siguiente ya tiene la caja banco abierta %s; no se crea sucesora", open_next.id
            )
            return result

        successor = self.open_or_update(
            successor_day,
            initial_balance=final_balance,
            state=RegisterState.OPEN,
            owner=owner,
            note=f"Caja banco creada automáticamente al cerrar mes de {month_name(month_index)} {year}",
        )
        result.successor_id = successor.id
        result.successor_created = True
        logger.info("Mes %s %s cerrado; nueva caja banco %s con saldo %s",
                    month_name(month_index), year, successor.id, final_balance)
        return result

    def tick(self, today: datetime = None, owner: Identity = None) -> List[MonthCloseResult]:
        """
        Cierra los meses vencidos: cajas ABIERTAS con más de un mes desde su
        apertura y de un mes distinto al actual. Idempotente; se repite hasta
        que no quede ninguna vencida (la sucesora también puede estar vencida).
        """
        today = today or datetime.now()
        results = []
        while True:
            expired = [
                r for r in bank_crud.list_registers(self.db, state=RegisterState.OPEN)
                if add_one_month(r.date) <= today and not same_month(r.date, today)
            ]
            if not expired:
                return results
            oldest = min(expired, key=lambda r: r.date)
            results.append(self.close_full_month(oldest.date.year, oldest.date.month - 1, owner=owner))

    # --- Borrado lógico ---

    def soft_delete(self, register_id: int) -> BankRegister:
        register = self.get(register_id)
        if register.is_open:
            raise InvalidState(
                f"Caja banco {register.id} abierta",
                user_message="Solo puedes desactivar cajas banco que estén CERRADAS.",
            )
        register.lifecycle = RegisterLifecycle.ARCHIVED
        commit(self.db)
        self.db.refresh(register)
        logger.info("Caja banco desactivada (soft delete): %s", register.id)
        return register

    def reactivate(self, register_id: int) -> BankRegister:
        register = self.get(register_id)
        register.lifecycle = RegisterLifecycle.ACTIVE
        commit(self.db)
        self.db.refresh(register)
        logger.info("Caja banco reactivada: %s", register.id)
        return register

    # --- Resumen ---

    def summary(self, register_id: int = None) -> BankSummary:
        register = self.get(register_id) if register_id is not None else None
        movements = bank_crud.list_movements(self.db, register_id)

        income = IncomeByCategory()
        expense = ExpenseByCategory()
        total_income = ZERO
        total_expense = ZERO
        for m in movements:
            amount = to_money(m.amount)
            if m.direction == MovementDirection.INCOME:
                total_income += amount
                if m.category == BankMovementCategory.PETTY_CASH_SETTLEMENT:
                    income.petty_cash_settlements += amount
                elif m.category == BankMovementCategory.CLIENT_TRANSFER:
                    income.client_transfers += amount
                else:
                    income.other_income += amount
            else:
                total_expense += amount
                if m.category == BankMovementCategory.WORKER_PAYMENT:
                    expense.worker_payments += amount
                elif m.category == BankMovementCategory.PETTY_CASH_REVERSAL:
                    expense.petty_cash_reversals += amount
                else:
                    expense.other_expense += amount

        final_balance = (
            to_money(register.current_balance) if register is not None else total_income - total_expense
        )
        return BankSummary(
            register_id=register_id,
            total_income=total_income,
            total_expense=total_expense,
            final_balance=final_balance,
            movement_count=len(movements),
            income_by_category=income,
            expense_by_category=expense,
        )


def _check_month_index(month_index: int):
    if not 0 <= month_index <= 11:
        raise InvalidPeriod(f"Mes fuera de rango: {month_index}")


def _validate_movement(direction, category, amount, description):
    if to_money(amount) < ZERO:
        raise InvalidMovement(f"Monto negativo: {amount}", user_message="El monto debe ser mayor o igual a 0.")
    if not description or not description.strip():
        raise InvalidMovement("Movimiento sin descripción", user_message="La descripción es obligatoria.")
    allowed = INCOME_CATEGORIES if direction == MovementDirection.INCOME else EXPENSE_CATEGORIES
    if category not in allowed:
        raise InvalidMovement(
            f"Categoría {category.value} no corresponde a {direction.value}",
            user_message="La categoría no corresponde al tipo de movimiento.",
        )
