import logging

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from cash_ledger.exceptions import ConcurrentModification
from cash_ledger.security import Identity, system_identity

logger = logging.getLogger(__name__)


def commit(db: Session) -> None:
    """
    Commit con control de concurrencia optimista: si otro cliente cambió la
    caja entre la lectura y la escritura (columna `version`), se descarta todo.
    """
    try:
        db.commit()
    except StaleDataError as e:
        db.rollback()
        logger.warning("Conflicto de versión al guardar caja: %s", e)
        raise ConcurrentModification(str(e))


def resolve_owner(owner: Identity = None) -> Identity:
    return owner or system_identity()
