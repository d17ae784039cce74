# cash_ledger/routers/petty_cash.py
from typing import List, Optional
from datetime import datetime
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cash_ledger.config import get_settings
from cash_ledger.database import get_db
from cash_ledger.schemas.cash import SettlementRead
from cash_ledger.schemas.petty_cash import (
    PettyCashOpen, PettyCashMovementCreate, PettyCashClose, PettyCashRead,
    PettyCashMovementRead, PettyCashCloseRead, PettyCashSummary, TodayStatusRead
)
from cash_ledger.security import Identity, get_current_identity
from cash_ledger.services.petty_cash import PettyCashManager
from cash_ledger.services.register_cache import OpenRegisterCache

router = APIRouter()


def get_manager(db: Session = Depends(get_db)) -> PettyCashManager:
    return PettyCashManager(db, cache=OpenRegisterCache(get_settings().cache_path))


# --- CONSULTAS ---

@router.get("/", response_model=List[PettyCashRead])
def list_registers(include_archived: bool = False, manager: PettyCashManager = Depends(get_manager)):
    """Cajas chicas activas, o todas (auditoría) con include_archived=true."""
    return manager.list_all() if include_archived else manager.list_active()


@router.get("/open", response_model=List[PettyCashRead])
def list_open(manager: PettyCashManager = Depends(get_manager)):
    return manager.list_open()


@router.get("/month/{year}/{month_index}", response_model=List[PettyCashRead])
def list_by_month(year: int, month_index: int, manager: PettyCashManager = Depends(get_manager)):
    return manager.list_by_month(year, month_index)


@router.get("/today", response_model=TodayStatusRead)
def today_status(manager: PettyCashManager = Depends(get_manager)):
    """Indica si hoy hay caja chica abierta, cerrada o ninguna."""
    status = manager.validate_today()
    return TodayStatusRead(
        valid=status.valid,
        kind=status.kind,
        register=PettyCashRead.model_validate(status.register) if status.register else None,
    )


@router.get("/today/open", response_model=Optional[PettyCashRead])
def open_today(manager: PettyCashManager = Depends(get_manager)):
    return manager.get_open_today()


@router.get("/{register_id}", response_model=PettyCashRead)
def get_register(register_id: int, manager: PettyCashManager = Depends(get_manager)):
    return manager.get(register_id)


@router.get("/{register_id}/movements", response_model=List[PettyCashMovementRead])
def list_movements(register_id: int, manager: PettyCashManager = Depends(get_manager)):
    return manager.movements(register_id)


@router.get("/{register_id}/summary", response_model=PettyCashSummary)
def register_summary(register_id: int, manager: PettyCashManager = Depends(get_manager)):
    return manager.summary(register_id)


# --- OPERACIONES ---

@router.post("/open", response_model=PettyCashRead)
def open_register(
    data: PettyCashOpen,
    manager: PettyCashManager = Depends(get_manager),
    identity: Identity = Depends(get_current_identity)
):
    return manager.open(
        date=data.date or datetime.now(),
        initial_balance=data.initial_balance,
        owner=identity,
        note=data.note,
    )


@router.post("/{register_id}/movements", response_model=PettyCashMovementRead)
def add_movement(
    register_id: int,
    data: PettyCashMovementCreate,
    manager: PettyCashManager = Depends(get_manager),
    identity: Identity = Depends(get_current_identity)
):
    return manager.register_movement(
        register_id,
        data.direction,
        data.amount,
        data.description,
        reference=data.reference,
        note=data.note,
        date=data.date,
        owner=identity,
    )


@router.post("/{register_id}/close", response_model=PettyCashCloseRead)
def close_register(
    register_id: int,
    data: PettyCashClose,
    manager: PettyCashManager = Depends(get_manager),
    identity: Identity = Depends(get_current_identity)
):
    # El cierre se guarda aunque la liquidación falle; el estado viene en `settlement`
    register, result = manager.close(register_id, final_balance=data.final_balance, owner=identity)
    return PettyCashCloseRead(
        register=PettyCashRead.model_validate(register),
        settlement=SettlementRead.model_validate(result),
    )


@router.post("/{register_id}/settle", response_model=SettlementRead)
def settle_register(
    register_id: int,
    manager: PettyCashManager = Depends(get_manager),
    identity: Identity = Depends(get_current_identity)
):
    return SettlementRead.model_validate(manager.settle(register_id))


@router.delete("/{register_id}", response_model=PettyCashRead)
def soft_delete_register(
    register_id: int,
    manager: PettyCashManager = Depends(get_manager),
    identity: Identity = Depends(get_current_identity)
):
    """Borrado lógico. Si estaba liquidada se descuenta de la caja banco."""
    return manager.soft_delete(register_id)


@router.post("/{register_id}/reactivate", response_model=PettyCashRead)
def reactivate_register(
    register_id: int,
    manager: PettyCashManager = Depends(get_manager),
    identity: Identity = Depends(get_current_identity)
):
    return manager.reactivate(register_id)
