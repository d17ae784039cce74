"""Configuración de pytest y fixtures compartidas."""

import os

# Antes de importar cash_ledger: base en memoria y sin scheduler
os.environ.setdefault("CASH_LEDGER_DATABASE_URL", "sqlite://")
os.environ.setdefault("CASH_LEDGER_SCHEDULER_ENABLED", "false")

from datetime import datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cash_ledger.config import get_settings
from cash_ledger.database import get_db
from cash_ledger.models import Base
from cash_ledger.services.bank import BankRegisterManager
from cash_ledger.services.petty_cash import PettyCashManager
from cash_ledger.services.register_cache import OpenRegisterCache
from cash_ledger.services.settlement import SettlementBridge


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def bank(db):
    return BankRegisterManager(db)


@pytest.fixture
def petty(db):
    return PettyCashManager(db, cache=OpenRegisterCache())


@pytest.fixture
def bridge(db):
    return SettlementBridge(db)


@pytest.fixture
def january_bank(bank):
    """Caja banco de enero 2025 con 1000 de saldo inicial."""
    return bank.open_or_update(datetime(2025, 1, 1), initial_balance=Decimal("1000"))


@pytest.fixture
def auth_headers():
    settings = get_settings()
    token = jwt.encode(
        {"sub": "u-1", "name": "Cajero Uno"},
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(session_factory):
    from cash_ledger.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
