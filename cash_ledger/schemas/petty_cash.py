# schemas/petty_cash.py
from pydantic import BaseModel, Field
from typing import Optional
from decimal import Decimal
from datetime import datetime

from cash_ledger.models import (
    MovementDirection, RegisterState, RegisterLifecycle, SettlementStatus, TodayState
)
from .cash import SettlementRead


class PettyCashOpen(BaseModel):
    date: Optional[datetime] = None  # Por defecto hoy
    initial_balance: Decimal = Field(default=Decimal("0"), ge=0)
    note: Optional[str] = None


class PettyCashMovementCreate(BaseModel):
    direction: MovementDirection
    amount: Decimal = Field(ge=0)
    description: str = Field(min_length=1)
    reference: Optional[str] = None  # Comprobante / venta / ticket
    note: Optional[str] = None
    date: Optional[datetime] = None


class PettyCashClose(BaseModel):
    final_balance: Optional[Decimal] = Field(default=None, ge=0)  # Lo contado físicamente


class PettyCashRead(BaseModel):
    id: int
    date: datetime
    initial_balance: Decimal
    current_balance: Decimal
    state: RegisterState
    lifecycle: RegisterLifecycle
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    note: Optional[str] = None
    bank_register_id: Optional[int] = None
    settlement_status: SettlementStatus
    settlement_error: Optional[str] = None
    settled_amount: Optional[Decimal] = None
    created_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PettyCashMovementRead(BaseModel):
    id: int
    register_id: int
    date: datetime
    direction: MovementDirection
    description: str
    amount: Decimal
    balance_before: Decimal
    balance_after: Decimal
    reference: Optional[str] = None
    user_name: Optional[str] = None
    note: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PettyCashCloseRead(BaseModel):
    register: PettyCashRead
    settlement: SettlementRead


class PettyCashSummary(BaseModel):
    register_id: int
    total_income: Decimal
    total_expense: Decimal
    final_balance: Decimal
    movement_count: int


class TodayStatusRead(BaseModel):
    valid: bool
    kind: TodayState
    register: Optional[PettyCashRead] = None

    class Config:
        from_attributes = True
