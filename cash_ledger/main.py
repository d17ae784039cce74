import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cash_ledger.config import get_settings
from cash_ledger.database import engine
from cash_ledger.exceptions import LedgerError, ledger_error_handler
from cash_ledger.models import Base
from cash_ledger.routers import petty_cash, bank
from cash_ledger.services.scheduler import start_scheduler, shutdown_scheduler

settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# 1. CREACIÓN AUTOMÁTICA DE TABLAS
Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Cash Ledger iniciado (base: %s)", engine.url.render_as_string(hide_password=True))
    start_scheduler()
    yield
    shutdown_scheduler()


app = FastAPI(
    title="Cash Ledger",
    description="Caja Chica diaria y Caja Banco mensual con liquidación y cierre de mes",
    version="1.0.0",
    lifespan=lifespan,
)

# 2. CONFIGURACIÓN DE CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 3. REGISTRO DE ROUTERS (BACKEND API)
app.include_router(petty_cash.router, prefix="/api/petty-cash", tags=["💵 Caja Chica"])
app.include_router(bank.router, prefix="/api/bank", tags=["🏦 Caja Banco"])

# 4. MANEJO DE ERRORES
app.add_exception_handler(LedgerError, ledger_error_handler)


@app.get("/")
def root():
    return {"service": "cash-ledger", "status": "ok"}
