# cash_ledger/models/cash.py
import enum


class RegisterState(str, enum.Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class RegisterLifecycle(str, enum.Enum):
    ACTIVE = "ACTIVE"       # Visible en listados y sumatorias
    ARCHIVED = "ARCHIVED"   # Borrado lógico: se conserva solo para auditoría


class MovementDirection(str, enum.Enum):
    INCOME = "INCOME"       # Ingreso
    EXPENSE = "EXPENSE"     # Egreso


class BankMovementCategory(str, enum.Enum):
    PETTY_CASH_SETTLEMENT = "PETTY_CASH_SETTLEMENT"   # Cierre de caja chica
    PETTY_CASH_REVERSAL = "PETTY_CASH_REVERSAL"       # Reverso al desactivar una caja chica
    CLIENT_TRANSFER = "CLIENT_TRANSFER"               # Transferencia de cliente
    WORKER_PAYMENT = "WORKER_PAYMENT"                 # Pago a trabajador
    OTHER_INCOME = "OTHER_INCOME"
    OTHER_EXPENSE = "OTHER_EXPENSE"


class SettlementStatus(str, enum.Enum):
    NONE = "NONE"           # Caja abierta, nada que liquidar
    PENDING = "PENDING"     # Cerrada, falta escribir en caja banco
    SETTLED = "SETTLED"
    FAILED = "FAILED"
    REVERSED = "REVERSED"   # Liquidación revertida por desactivación


class TodayState(str, enum.Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    MISSING = "MISSING"     # Hoy no se ha creado caja chica


class RegisterMixin:
    """Helpers comunes a Caja Chica y Caja Banco."""

    @property
    def is_active(self) -> bool:
        return self.lifecycle == RegisterLifecycle.ACTIVE

    @property
    def is_open(self) -> bool:
        return self.state == RegisterState.OPEN
