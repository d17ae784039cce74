"""
Tarea programada de cierre de mes.

Una vez al día (hora configurable) se ejecuta el `tick()` de Caja Banco,
que cierra los meses vencidos y abre la caja del mes siguiente, y se
reintentan las liquidaciones de caja chica que quedaron pendientes.
"""
import logging
from typing import Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from cash_ledger.config import get_settings
from cash_ledger.database import SessionLocal
from .bank import BankRegisterManager
from .settlement import SettlementBridge

logger = logging.getLogger(__name__)

scheduler: Optional[BackgroundScheduler] = None


def run_month_close_tick(session_factory=SessionLocal):
    db = session_factory()
    try:
        closed = BankRegisterManager(db).tick()
        retried = SettlementBridge(db).retry_pending()
        logger.info("Tick de cierre de mes: %d meses cerrados, %d liquidaciones reintentadas",
                    len(closed), len(retried))
        return closed, retried
    finally:
        db.close()


def job_listener(event):
    if event.exception:
        logger.error("Falló la tarea '%s': %s", event.job_id, event.exception)


def init_scheduler() -> BackgroundScheduler:
    global scheduler
    settings = get_settings()

    scheduler = BackgroundScheduler()
    scheduler.add_listener(job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)
    scheduler.add_job(
        run_month_close_tick,
        CronTrigger(hour=settings.month_close_hour, minute=settings.month_close_minute),
        id="month_close_tick",
        name="Cierre de mes Caja Banco",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    return scheduler


def start_scheduler():
    if not get_settings().scheduler_enabled:
        logger.info("Scheduler deshabilitado por configuración")
        return
    if scheduler is None:
        init_scheduler()
    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler iniciado")


def shutdown_scheduler():
    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler detenido")
