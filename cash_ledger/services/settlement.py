"""
Puente de liquidación Caja Chica -> Caja Banco.

El cierre de la caja chica y la escritura en caja banco son dos commits.
Entre ambos la caja chica queda marcada PENDING en la base, de modo que un
fallo (o una caída) se puede detectar y reintentar con `retry_pending()`.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cash_ledger.crud import bank as bank_crud
from cash_ledger.crud import petty_cash as petty_crud
from cash_ledger.exceptions import InvalidState, LedgerError, RegisterNotFound, SettlementError
from cash_ledger.models import (
    BankMovementCategory, BankRegister, MovementDirection, PettyCashRegister, SettlementStatus
)
from cash_ledger.utils.money import to_money
from .base import commit

logger = logging.getLogger(__name__)


@dataclass
class SettlementResult:
    status: SettlementStatus
    petty_register_id: int
    bank_register_id: Optional[int] = None
    amount: Optional[Decimal] = None
    movement_id: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status in (SettlementStatus.SETTLED, SettlementStatus.REVERSED)


class SettlementBridge:
    def __init__(self, db: Session):
        self.db = db

    def _get_petty(self, petty_id: int) -> PettyCashRegister:
        register = petty_crud.get_register(self.db, petty_id)
        if register is None:
            raise RegisterNotFound(f"Caja chica {petty_id} no encontrada")
        return register

    def _resolve_bank(self, register: PettyCashRegister) -> Optional[BankRegister]:
        if register.bank_register_id:
            return bank_crud.get_register(self.db, register.bank_register_id)
        # Sin relación al abrir: se busca la caja banco del mismo mes
        return bank_crud.find_for_month(self.db, register.date)

    def settle(self, petty_id: int) -> SettlementResult:
        """
        Registra el saldo de la caja chica cerrada como ingreso en su caja banco.
        Idempotente. Los fallos se guardan en la caja chica y se devuelven, no se lanzan.
        """
        register = self._get_petty(petty_id)
        if register.settlement_status == SettlementStatus.SETTLED:
            return SettlementResult(
                status=SettlementStatus.SETTLED,
                petty_register_id=register.id,
                bank_register_id=register.bank_register_id,
                amount=to_money(register.settled_amount),
            )
        if register.is_open:
            raise InvalidState(
                f"Caja chica {register.id} abierta",
                user_message="Solo se liquidan cajas chicas cerradas.",
            )
        if not register.is_active:
            raise InvalidState(
                f"Caja chica {register.id} desactivada",
                user_message="La caja chica está desactivada; reactívela para liquidarla.",
            )

        try:
            bank = self._resolve_bank(register)
            if bank is None:
                raise SettlementError(f"No hay caja banco para {register.date:%m/%Y}")
            if not bank.is_active:
                raise SettlementError(f"La caja banco asociada {bank.id} está desactivada")

            amount = to_money(register.current_balance)
            movement = bank_crud.build_movement(
                MovementDirection.INCOME,
                BankMovementCategory.PETTY_CASH_SETTLEMENT,
                amount,
                f"Cierre de Caja Chica del día {register.date:%d/%m/%Y}",
                reference=str(register.id),
                petty_register_id=register.id,
                user_id=register.user_id,
                user_name=register.user_name,
            )
            # La caja banco puede estar cerrada: la liquidación igual se asienta
            bank_crud.apply_to_register(bank, movement)
            self.db.add(movement)

            register.bank_register_id = bank.id
            register.settlement_status = SettlementStatus.SETTLED
            register.settled_amount = amount
            register.settlement_error = None
            commit(self.db)
        except (LedgerError, SQLAlchemyError) as e:
            self.db.rollback()
            message = e.message if isinstance(e, LedgerError) else str(e)
            logger.warning("No se pudo liquidar la caja chica %s en caja banco: %s", petty_id, message)
            self._mark_failed(petty_id, message)
            return SettlementResult(
                status=SettlementStatus.FAILED, petty_register_id=petty_id, error=message
            )

        logger.info("Caja chica %s liquidada en caja banco %s por %s", register.id, bank.id, amount)
        return SettlementResult(
            status=SettlementStatus.SETTLED,
            petty_register_id=register.id,
            bank_register_id=bank.id,
            amount=amount,
            movement_id=movement.id,
        )

    def _mark_failed(self, petty_id: int, message: str):
        try:
            register = self._get_petty(petty_id)
            register.settlement_status = SettlementStatus.FAILED
            register.settlement_error = message
            self.db.commit()
        except SQLAlchemyError:
            # Queda PENDING desde el cierre; retry_pending la volverá a tomar
            self.db.rollback()
            logger.exception("No se pudo marcar la liquidación fallida de la caja chica %s", petty_id)

    def stage_reversal(self, register: PettyCashRegister):
        """
        Prepara (sin commit) el egreso que descuenta de caja banco una caja
        chica ya liquidada. Lanza InsufficientFunds sin modificar nada.
        """
        if register.settlement_status != SettlementStatus.SETTLED:
            return None
        bank = bank_crud.get_register(self.db, register.bank_register_id)
        if bank is None:
            raise RegisterNotFound(f"Caja banco {register.bank_register_id} no encontrada")

        amount = to_money(register.settled_amount)
        movement = bank_crud.build_movement(
            MovementDirection.EXPENSE,
            BankMovementCategory.PETTY_CASH_REVERSAL,
            amount,
            f"Reverso de Caja Chica del día {register.date:%d/%m/%Y}",
            reference=str(register.id),
            petty_register_id=register.id,
        )
        bank_crud.apply_to_register(bank, movement)
        self.db.add(movement)
        register.settlement_status = SettlementStatus.REVERSED
        register.settled_amount = None
        return movement

    def reverse(self, petty_id: int) -> SettlementResult:
        register = self._get_petty(petty_id)
        if register.settlement_status != SettlementStatus.SETTLED:
            raise InvalidState(
                f"Caja chica {register.id} sin liquidación vigente ({register.settlement_status.value})",
                user_message="La caja chica no tiene una liquidación que revertir.",
            )
        amount = to_money(register.settled_amount)
        movement = self.stage_reversal(register)
        commit(self.db)
        logger.info("Liquidación de caja chica %s revertida (%s)", register.id, amount)
        return SettlementResult(
            status=SettlementStatus.REVERSED,
            petty_register_id=register.id,
            bank_register_id=register.bank_register_id,
            amount=amount,
            movement_id=movement.id,
        )

    def retry_pending(self) -> List[SettlementResult]:
        """Reintenta las cajas chicas cerradas que quedaron PENDING o FAILED."""
        pending_ids = [r.id for r in petty_crud.list_pending_settlement(self.db)]
        results = [self.settle(petty_id) for petty_id in pending_ids]
        if results:
            settled = sum(1 for r in results if r.ok)
            logger.info("Reintento de liquidaciones: %d de %d completadas", settled, len(results))
        return results
