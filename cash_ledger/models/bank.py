# cash_ledger/models/bank.py
from sqlalchemy import Column, Integer, String, DateTime, Numeric, ForeignKey, Enum, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from cash_ledger.database import Base
from .cash import (
    RegisterMixin, RegisterState, RegisterLifecycle, MovementDirection, BankMovementCategory
)


class BankRegister(RegisterMixin, Base):
    """
    Caja banco mensual. Recibe transferencias, pagos y las liquidaciones
    de las cajas chicas del mes; su saldo final pasa al mes siguiente.
    """
    __tablename__ = "bank_registers"

    id = Column(Integer, primary_key=True, index=True)
    date = Column(DateTime, nullable=False, index=True)  # Normalmente día 1 del mes

    initial_balance = Column(Numeric(12, 2), nullable=False, default=0)
    current_balance = Column(Numeric(12, 2), nullable=False, default=0)

    state = Column(Enum(RegisterState), default=RegisterState.OPEN, nullable=False)
    lifecycle = Column(Enum(RegisterLifecycle), default=RegisterLifecycle.ACTIVE, nullable=False)

    user_id = Column(String, nullable=True)
    user_name = Column(String, nullable=True)
    note = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    closed_at = Column(DateTime(timezone=True), nullable=True)

    version = Column(Integer, nullable=False)
    __mapper_args__ = {"version_id_col": version}

    movements = relationship("BankMovement", back_populates="register", order_by="BankMovement.id")
    petty_registers = relationship("PettyCashRegister", back_populates="bank_register")


class BankMovement(Base):
    __tablename__ = "bank_movements"

    id = Column(Integer, primary_key=True, index=True)
    # Puede ser null: transferencias sin caja asignada todavía
    register_id = Column(Integer, ForeignKey("bank_registers.id"), nullable=True, index=True)

    date = Column(DateTime, nullable=False, index=True)
    direction = Column(Enum(MovementDirection), nullable=False)
    category = Column(Enum(BankMovementCategory), nullable=False)
    description = Column(String, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)

    # Null mientras el movimiento no esté asociado a una caja
    balance_before = Column(Numeric(12, 2), nullable=True)
    balance_after = Column(Numeric(12, 2), nullable=True)
    posted_at = Column(DateTime, nullable=True)  # Momento en que se ligó a la caja

    reference = Column(String, nullable=True)  # Código de transferencia, id de caja chica
    petty_register_id = Column(Integer, ForeignKey("petty_cash_registers.id"), nullable=True)
    sale_id = Column(String, nullable=True)

    user_id = Column(String, nullable=True)
    user_name = Column(String, nullable=True)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    register = relationship("BankRegister", back_populates="movements")
