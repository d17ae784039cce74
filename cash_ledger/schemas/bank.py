# schemas/bank.py
from pydantic import BaseModel, Field
from typing import Optional, List
from decimal import Decimal
from datetime import datetime

from cash_ledger.models import (
    MovementDirection, BankMovementCategory, RegisterState, RegisterLifecycle
)


class BankRegisterOpen(BaseModel):
    date: Optional[datetime] = None
    initial_balance: Optional[Decimal] = Field(default=None, ge=0)  # None = heredar del mes anterior
    state: Optional[RegisterState] = None
    note: Optional[str] = None


class BankMovementCreate(BaseModel):
    register_id: Optional[int] = None  # Sin caja = movimiento pendiente de asociar
    direction: MovementDirection
    category: Optional[BankMovementCategory] = None
    amount: Decimal = Field(ge=0)
    description: str = Field(min_length=1)
    reference: Optional[str] = None
    sale_id: Optional[str] = None
    note: Optional[str] = None
    date: Optional[datetime] = None


class ClientTransferCreate(BaseModel):
    amount: Decimal = Field(gt=0)
    transfer_code: str
    sale_id: str


class BankRegisterClose(BaseModel):
    final_balance: Optional[Decimal] = Field(default=None, ge=0)


class MonthClose(BaseModel):
    year: int
    month_index: int = Field(ge=0, le=11)  # Base 0: 0 = enero


class BankRegisterRead(BaseModel):
    id: int
    date: datetime
    initial_balance: Decimal
    current_balance: Decimal
    state: RegisterState
    lifecycle: RegisterLifecycle
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    note: Optional[str] = None
    created_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BankMovementRead(BaseModel):
    id: int
    register_id: Optional[int] = None
    date: datetime
    direction: MovementDirection
    category: BankMovementCategory
    description: str
    amount: Decimal
    balance_before: Optional[Decimal] = None
    balance_after: Optional[Decimal] = None
    reference: Optional[str] = None
    petty_register_id: Optional[int] = None
    sale_id: Optional[str] = None
    user_name: Optional[str] = None
    note: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class IncomeByCategory(BaseModel):
    petty_cash_settlements: Decimal = Decimal("0.00")
    client_transfers: Decimal = Decimal("0.00")
    other_income: Decimal = Decimal("0.00")


class ExpenseByCategory(BaseModel):
    worker_payments: Decimal = Decimal("0.00")
    petty_cash_reversals: Decimal = Decimal("0.00")
    other_expense: Decimal = Decimal("0.00")


class BankSummary(BaseModel):
    register_id: Optional[int] = None
    total_income: Decimal
    total_expense: Decimal
    final_balance: Decimal
    movement_count: int
    income_by_category: IncomeByCategory
    expense_by_category: ExpenseByCategory


class MonthCloseRead(BaseModel):
    year: int
    month_index: int
    closed_register_ids: List[int] = []
    successor_id: Optional[int] = None
    successor_created: bool = False

    class Config:
        from_attributes = True
