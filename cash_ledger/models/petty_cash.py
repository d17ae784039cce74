# cash_ledger/models/petty_cash.py
from sqlalchemy import Column, Integer, String, DateTime, Numeric, ForeignKey, Enum, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from cash_ledger.database import Base
from .cash import (
    RegisterMixin, RegisterState, RegisterLifecycle, MovementDirection, SettlementStatus
)


class PettyCashRegister(RegisterMixin, Base):
    """
    Caja chica diaria. Solo puede existir una por día (abierta o cerrada)
    y al cerrarse se liquida en la caja banco del mismo mes.
    """
    __tablename__ = "petty_cash_registers"

    id = Column(Integer, primary_key=True, index=True)
    date = Column(DateTime, nullable=False, index=True)  # Inicio del día

    initial_balance = Column(Numeric(12, 2), nullable=False, default=0)
    current_balance = Column(Numeric(12, 2), nullable=False, default=0)

    state = Column(Enum(RegisterState), default=RegisterState.OPEN, nullable=False)
    lifecycle = Column(Enum(RegisterLifecycle), default=RegisterLifecycle.ACTIVE, nullable=False)

    user_id = Column(String, nullable=True)
    user_name = Column(String, nullable=True)
    note = Column(Text, nullable=True)

    # Caja banco del mismo mes (se resuelve al abrir)
    bank_register_id = Column(Integer, ForeignKey("bank_registers.id"), nullable=True)

    # Marcador persistente de la liquidación hacia caja banco
    settlement_status = Column(Enum(SettlementStatus), default=SettlementStatus.NONE, nullable=False)
    settlement_error = Column(Text, nullable=True)
    settled_amount = Column(Numeric(12, 2), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    closed_at = Column(DateTime(timezone=True), nullable=True)

    version = Column(Integer, nullable=False)
    __mapper_args__ = {"version_id_col": version}

    bank_register = relationship("BankRegister", back_populates="petty_registers")
    movements = relationship(
        "PettyCashMovement", back_populates="register", order_by="PettyCashMovement.id"
    )


class PettyCashMovement(Base):
    __tablename__ = "petty_cash_movements"

    id = Column(Integer, primary_key=True, index=True)
    register_id = Column(Integer, ForeignKey("petty_cash_registers.id"), nullable=False, index=True)

    date = Column(DateTime, nullable=False)
    direction = Column(Enum(MovementDirection), nullable=False)
    description = Column(String, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)

    # Saldos calculados al momento de insertar
    balance_before = Column(Numeric(12, 2), nullable=False)
    balance_after = Column(Numeric(12, 2), nullable=False)

    reference = Column(String, nullable=True)  # Comprobante, venta, ticket
    user_id = Column(String, nullable=True)
    user_name = Column(String, nullable=True)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    register = relationship("PettyCashRegister", back_populates="movements")
