# cash_ledger/models/__init__.py

# 1. Base de datos (Origen de la clase declarativa)
from cash_ledger.database import Base

# 2. Enums compartidos por ambas cajas
from .cash import (
    RegisterState,
    RegisterLifecycle,
    MovementDirection,
    BankMovementCategory,
    SettlementStatus,
    TodayState,
)

# 3. Caja Banco (mensual)
from .bank import BankRegister, BankMovement

# 4. Caja Chica (diaria)
from .petty_cash import PettyCashRegister, PettyCashMovement
