# cash_ledger/routers/bank.py
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from cash_ledger.database import get_db
from cash_ledger.schemas.bank import (
    BankRegisterOpen, BankMovementCreate, ClientTransferCreate, BankRegisterClose,
    MonthClose, BankRegisterRead, BankMovementRead, BankSummary, MonthCloseRead
)
from cash_ledger.schemas.cash import SettlementRead, BalanceReportRead, LedgerTotals
from cash_ledger.security import Identity, get_current_identity
from cash_ledger.services import balance
from cash_ledger.services.bank import BankRegisterManager
from cash_ledger.services.settlement import SettlementBridge

router = APIRouter()


def get_manager(db: Session = Depends(get_db)) -> BankRegisterManager:
    return BankRegisterManager(db)


# --- CONSULTAS ---

@router.get("/", response_model=List[BankRegisterRead])
def list_registers(include_archived: bool = False, manager: BankRegisterManager = Depends(get_manager)):
    return manager.list_all() if include_archived else manager.list_active()


@router.get("/month/{year}/{month_index}", response_model=List[BankRegisterRead])
def list_by_month(year: int, month_index: int, manager: BankRegisterManager = Depends(get_manager)):
    return manager.list_by_month(year, month_index)


@router.get("/movements", response_model=List[BankMovementRead])
def list_all_movements(manager: BankRegisterManager = Depends(get_manager)):
    """Todos los movimientos, incluidos los que aún no tienen caja."""
    return manager.movements()


@router.get("/movements/month/{year}/{month_index}", response_model=List[BankMovementRead])
def list_movements_by_month(year: int, month_index: int, manager: BankRegisterManager = Depends(get_manager)):
    return manager.movements_by_month(year, month_index)


@router.get("/summary", response_model=BankSummary)
def global_summary(manager: BankRegisterManager = Depends(get_manager)):
    return manager.summary()


@router.get("/totals", response_model=LedgerTotals)
def ledger_totals(db: Session = Depends(get_db)):
    return balance.global_totals(db)


@router.get("/{register_id}", response_model=BankRegisterRead)
def get_register(register_id: int, manager: BankRegisterManager = Depends(get_manager)):
    return manager.get(register_id)


@router.get("/{register_id}/movements", response_model=List[BankMovementRead])
def list_movements(register_id: int, manager: BankRegisterManager = Depends(get_manager)):
    return manager.movements(register_id)


@router.get("/{register_id}/summary", response_model=BankSummary)
def register_summary(register_id: int, manager: BankRegisterManager = Depends(get_manager)):
    return manager.summary(register_id)


@router.get("/{register_id}/balance", response_model=BalanceReportRead)
def balance_report(register_id: int, repair: bool = False, db: Session = Depends(get_db)):
    """Compara el saldo guardado contra el libro; con repair=true lo corrige."""
    return BalanceReportRead.model_validate(balance.recompute_bank_balance(db, register_id, repair=repair))


# --- OPERACIONES ---

@router.post("/open", response_model=BankRegisterRead)
def open_register(
    data: BankRegisterOpen,
    manager: BankRegisterManager = Depends(get_manager),
    identity: Identity = Depends(get_current_identity)
):
    """Crea la caja banco del día o actualiza la existente (upsert)."""
    return manager.open_or_update(
        date=data.date,
        initial_balance=data.initial_balance,
        state=data.state,
        owner=identity,
        note=data.note,
    )


@router.post("/movements", response_model=BankMovementRead)
def add_movement(
    data: BankMovementCreate,
    manager: BankRegisterManager = Depends(get_manager),
    identity: Identity = Depends(get_current_identity)
):
    return manager.register_movement(
        data.direction,
        data.amount,
        data.description,
        register_id=data.register_id,
        category=data.category,
        date=data.date,
        reference=data.reference,
        sale_id=data.sale_id,
        note=data.note,
        owner=identity,
    )


@router.post("/client-transfers", response_model=BankMovementRead)
def client_transfer(
    data: ClientTransferCreate,
    manager: BankRegisterManager = Depends(get_manager),
    identity: Identity = Depends(get_current_identity)
):
    """Usado por ventas cuando el cliente paga por transferencia o tarjeta."""
    return manager.record_client_transfer(data.amount, data.transfer_code, data.sale_id, owner=identity)


@router.post("/{register_id}/associate", response_model=List[BankMovementRead])
def associate_movements(
    register_id: int,
    manager: BankRegisterManager = Depends(get_manager),
    identity: Identity = Depends(get_current_identity)
):
    return manager.associate_unattached(register_id)


@router.post("/{register_id}/close", response_model=BankRegisterRead)
def close_register(
    register_id: int,
    data: BankRegisterClose,
    manager: BankRegisterManager = Depends(get_manager),
    identity: Identity = Depends(get_current_identity)
):
    return manager.close(register_id, final_balance=data.final_balance, owner=identity)


@router.post("/close-month", response_model=MonthCloseRead)
def close_month(
    data: MonthClose,
    manager: BankRegisterManager = Depends(get_manager),
    identity: Identity = Depends(get_current_identity)
):
    return MonthCloseRead.model_validate(manager.close_full_month(data.year, data.month_index, owner=identity))


@router.post("/tick", response_model=List[MonthCloseRead])
def run_tick(
    manager: BankRegisterManager = Depends(get_manager),
    identity: Identity = Depends(get_current_identity)
):
    """Cierra los meses vencidos. Es lo mismo que ejecuta el scheduler."""
    return [MonthCloseRead.model_validate(r) for r in manager.tick(owner=identity)]


@router.post("/retry-settlements", response_model=List[SettlementRead])
def retry_settlements(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity)
):
    return [SettlementRead.model_validate(r) for r in SettlementBridge(db).retry_pending()]


@router.delete("/{register_id}", response_model=BankRegisterRead)
def soft_delete_register(
    register_id: int,
    manager: BankRegisterManager = Depends(get_manager),
    identity: Identity = Depends(get_current_identity)
):
    return manager.soft_delete(register_id)


@router.post("/{register_id}/reactivate", response_model=BankRegisterRead)
def reactivate_register(
    register_id: int,
    manager: BankRegisterManager = Depends(get_manager),
    identity: Identity = Depends(get_current_identity)
):
    return manager.reactivate(register_id)
