# schemas/cash.py
from pydantic import BaseModel
from typing import Optional, List
from decimal import Decimal

from cash_ledger.models import SettlementStatus


class SettlementRead(BaseModel):
    status: SettlementStatus
    petty_register_id: int
    bank_register_id: Optional[int] = None
    amount: Optional[Decimal] = None
    movement_id: Optional[int] = None
    error: Optional[str] = None

    class Config:
        from_attributes = True


class BalanceReportRead(BaseModel):
    bank_register_id: int
    stored_balance: Decimal
    from_movements: Decimal             # Saldo inicial + movimientos ligados
    petty_closed_total: Decimal         # Cajas chicas cerradas y activas del mes
    settled_total: Decimal              # Liquidaciones - reversos en el libro banco
    unsettled_petty_ids: List[int] = []
    chain_break: Optional[int] = None   # Índice del primer movimiento que no encadena
    consistent: bool
    repaired: bool = False

    class Config:
        from_attributes = True


class LedgerTotals(BaseModel):
    total_bank_registers: int
    total_petty_closed: Decimal      # Total ganado en cajas chicas cerradas
    total_bank_income: Decimal       # Transferencias y otros ingresos
    total_income: Decimal
    total_bank_expense: Decimal
