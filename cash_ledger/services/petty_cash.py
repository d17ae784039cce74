"""
Caja Chica: ciclo de vida diario del efectivo.

- Una sola caja por día (abierta o cerrada), y solo si existe alguna Caja Banco.
- Movimientos con saldo anterior/nuevo; el efectivo nunca queda negativo.
- Al cerrar se liquida en la Caja Banco del mes (ver SettlementBridge).
- Borrado lógico que revierte la liquidación en caja banco.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from cash_ledger.crud import bank as bank_crud
from cash_ledger.crud import petty_cash as petty_crud
from cash_ledger.exceptions import (
    DependencyMissing, DuplicateForPeriod, InvalidMovement, InvalidState,
    RegisterNotFound, RegisterNotOpen
)
from cash_ledger.models import (
    MovementDirection, PettyCashMovement, PettyCashRegister,
    RegisterLifecycle, RegisterState, SettlementStatus, TodayState
)
from cash_ledger.schemas.petty_cash import PettyCashSummary
from cash_ledger.security import Identity
from cash_ledger.utils.money import to_money, ZERO
from cash_ledger.utils.periods import start_of_day
from .base import commit, resolve_owner
from .register_cache import OpenRegisterCache
from .settlement import SettlementBridge, SettlementResult

logger = logging.getLogger(__name__)


@dataclass
class TodayStatus:
    valid: bool
    kind: TodayState
    register: Optional[PettyCashRegister] = None


class PettyCashManager:
    def __init__(self, db: Session, cache: OpenRegisterCache = None, bridge: SettlementBridge = None):
        self.db = db
        self.cache = cache or OpenRegisterCache()
        self.bridge = bridge or SettlementBridge(db)

    # --- Consultas ---

    def get(self, register_id: int) -> PettyCashRegister:
        register = petty_crud.get_register(self.db, register_id)
        if register is None:
            raise RegisterNotFound(
                f"Caja chica {register_id} no encontrada",
                user_message="Caja chica no encontrada.",
            )
        return register

    def list_active(self):
        return petty_crud.list_registers(self.db)

    def list_all(self):
        """Incluye las desactivadas, para reportes históricos y auditoría."""
        return petty_crud.list_registers(self.db, include_archived=True)

    def list_open(self):
        return petty_crud.list_registers(self.db, state=RegisterState.OPEN)

    def list_by_month(self, year: int, month_index: int):
        return petty_crud.list_registers_by_month(self.db, year, month_index)

    def movements(self, register_id: int):
        self.get(register_id)
        return petty_crud.list_movements(self.db, register_id, newest_first=True)

    def get_open_today(self, today: datetime = None) -> Optional[PettyCashRegister]:
        """Caja abierta de hoy. Primero la caché local (revalidada), luego la base."""
        today = start_of_day(today)

        cached_id = self.cache.get()
        if cached_id is not None:
            register = petty_crud.get_register(self.db, cached_id)
            if register and register.is_open and register.is_active and start_of_day(register.date) == today:
                return register
            self.cache.clear()

        register = petty_crud.find_active_register_for_day(self.db, today)
        if register and register.is_open:
            self.cache.set(register.id)
            return register
        return None

    def validate_today(self, today: datetime = None) -> TodayStatus:
        register = petty_crud.find_active_register_for_day(self.db, start_of_day(today))
        if register is None:
            self.cache.clear()
            return TodayStatus(valid=False, kind=TodayState.MISSING)
        if register.is_open:
            self.cache.set(register.id)
            return TodayStatus(valid=True, kind=TodayState.OPEN, register=register)
        self.cache.clear()
        return TodayStatus(valid=False, kind=TodayState.CLOSED, register=register)

    # --- Apertura ---

    def open(self, date: datetime = None, initial_balance=0, owner: Identity = None, note: str = None):
        owner = resolve_owner(owner)

        # 1. Validación obligatoria: debe existir al menos una Caja Banco
        if not bank_crud.exists_any(self.db):
            raise DependencyMissing("No existe ninguna caja banco")

        # 2. Una sola caja por día, abierta o cerrada
        day = start_of_day(date)
        if petty_crud.find_register_for_day(self.db, day):
            raise DuplicateForPeriod(
                f"Ya existe caja chica para {day.date()}",
                user_message="Ya existe una caja chica creada para el día seleccionado.",
            )

        balance = to_money(initial_balance)
        if balance < ZERO:
            raise InvalidMovement(f"Monto inicial negativo: {balance}")

        register = PettyCashRegister(
            date=day,
            initial_balance=balance,
            current_balance=balance,
            state=RegisterState.OPEN,
            lifecycle=RegisterLifecycle.ACTIVE,
            settlement_status=SettlementStatus.NONE,
            user_id=owner.user_id,
            user_name=owner.user_name,
            note=note or "",
        )

        # 3. Caja banco ABIERTA del mismo mes (no bloquea si no existe)
        bank = bank_crud.find_open_for_month(self.db, day)
        if bank:
            register.bank_register_id = bank.id
        else:
            logger.warning("No hay caja banco ABIERTA para %s; la caja chica se crea sin relación", day.strftime("%m/%Y"))

        self.db.add(register)
        commit(self.db)
        self.db.refresh(register)
        self.cache.set(register.id)
        logger.info("Caja chica %s abierta para %s con %s", register.id, day.date(), balance)
        return register

    # --- Movimientos ---

    def register_movement(
        self,
        register_id: int,
        direction: MovementDirection,
        amount,
        description: str,
        reference: str = None,
        note: str = None,
        date: datetime = None,
        owner: Identity = None,
    ) -> PettyCashMovement:
        owner = resolve_owner(owner)
        register = self.get(register_id)

        if to_money(amount) < ZERO:
            raise InvalidMovement(f"Monto negativo: {amount}", user_message="El monto debe ser mayor o igual a 0.")
        if not description or not description.strip():
            raise InvalidMovement("Movimiento sin descripción", user_message="La descripción es obligatoria.")
        if not register.is_active:
            raise InvalidState(
                f"Caja chica {register.id} desactivada",
                user_message="La caja chica está desactivada.",
            )
        if not register.is_open:
            raise RegisterNotOpen(
                f"Caja chica {register.id} cerrada",
                user_message="La caja chica ya está cerrada; no admite más movimientos.",
            )

        movement = petty_crud.add_movement(
            self.db, register, direction, amount, description,
            date=date, reference=reference, note=note,
            user_id=owner.user_id, user_name=owner.user_name,
        )
        commit(self.db)
        self.db.refresh(movement)
        return movement

    # --- Cierre y liquidación ---

    def close(self, register_id: int, final_balance=None, owner: Identity = None) -> Tuple[PettyCashRegister, SettlementResult]:
        """
        Cierra la caja y la liquida en caja banco. El cierre queda guardado
        aunque la liquidación falle: la caja queda FAILED/PENDING para reintento.
        """
        owner = resolve_owner(owner)
        register = self.get(register_id)
        if not register.is_active:
            raise InvalidState(
                f"Caja chica {register.id} desactivada",
                user_message="La caja chica está desactivada; reactívela antes de cerrarla.",
            )
        if not register.is_open:
            raise RegisterNotOpen(
                f"Caja chica {register.id} ya cerrada",
                user_message="La caja chica ya está cerrada.",
            )

        # 1. Monto contado distinto al sistema: se asienta un ajuste
        if final_balance is not None:
            final = to_money(final_balance)
            if final < ZERO:
                raise InvalidMovement(f"Monto final negativo: {final}")
            diff = final - to_money(register.current_balance)
            if diff != ZERO:
                direction = MovementDirection.INCOME if diff > ZERO else MovementDirection.EXPENSE
                petty_crud.add_movement(
                    self.db, register, direction, abs(diff), "Ajuste de cierre",
                    user_id=owner.user_id, user_name=owner.user_name,
                )

        # 2. Cerrar y dejar la liquidación marcada como pendiente (mismo commit)
        register.state = RegisterState.CLOSED
        register.closed_at = datetime.now()
        register.settlement_status = SettlementStatus.PENDING
        register.settlement_error = None
        commit(self.db)

        if self.cache.get() == register.id:
            self.cache.clear()
        logger.info("Caja chica %s cerrada con %s", register.id, register.current_balance)

        # 3. Liquidar en caja banco
        result = self.bridge.settle(register.id)
        self.db.refresh(register)
        return register, result

    def settle(self, register_id: int) -> SettlementResult:
        return self.bridge.settle(register_id)

    # --- Borrado lógico ---

    def soft_delete(self, register_id: int) -> PettyCashRegister:
        """
        Desactiva la caja. Si ya estaba liquidada, en el mismo commit se
        descuenta su monto de la caja banco; si no alcanza el saldo no se hace nada.
        """
        register = self.get(register_id)
        if not register.is_active:
            return register

        self.bridge.stage_reversal(register)
        register.lifecycle = RegisterLifecycle.ARCHIVED
        commit(self.db)
        self.db.refresh(register)

        if self.cache.get() == register.id:
            self.cache.clear()
        logger.info("Caja chica desactivada (soft delete): %s", register.id)
        return register

    def reactivate(self, register_id: int) -> PettyCashRegister:
        if not bank_crud.exists_any(self.db):
            raise DependencyMissing(
                "No existe ninguna caja banco",
                user_message="Debe crear primero una Caja Banco antes de activar una Caja Chica.",
            )
        register = self.get(register_id)
        if register.is_active:
            return register

        register.lifecycle = RegisterLifecycle.ACTIVE
        needs_settlement = (
            register.state == RegisterState.CLOSED
            and register.settlement_status != SettlementStatus.SETTLED
        )
        if needs_settlement:
            register.settlement_status = SettlementStatus.PENDING
        commit(self.db)
        logger.info("Caja chica reactivada: %s", register.id)

        if needs_settlement:
            self.bridge.settle(register.id)
        self.db.refresh(register)
        return register

    # --- Resumen ---

    def summary(self, register_id: int) -> PettyCashSummary:
        register = self.get(register_id)
        movements = petty_crud.list_movements(self.db, register_id)
        total_income = sum(
            (to_money(m.amount) for m in movements if m.direction == MovementDirection.INCOME), ZERO
        )
        total_expense = sum(
            (to_money(m.amount) for m in movements if m.direction == MovementDirection.EXPENSE), ZERO
        )
        return PettyCashSummary(
            register_id=register.id,
            total_income=total_income,
            total_expense=total_expense,
            final_balance=to_money(register.current_balance),
            movement_count=len(movements),
        )
