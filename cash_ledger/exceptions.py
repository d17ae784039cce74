# cash_ledger/exceptions.py
"""Errores del motor de cajas con mensajes accionables para el usuario."""

from fastapi import Request
from fastapi.responses import JSONResponse

import logging

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """Error base. `user_message` es lo que se muestra en pantalla."""
    status_code = 400
    default_user_message = "No se pudo completar la operación de caja."

    def __init__(self, message: str, user_message: str = None, error_code: str = None):
        self.message = message
        self.user_message = user_message or self.default_user_message
        self.error_code = error_code or self.__class__.__name__.upper()
        super().__init__(self.message)


class DependencyMissing(LedgerError):
    default_user_message = "Debe crear primero una Caja Banco antes de registrar una Caja Chica."


class DuplicateForPeriod(LedgerError):
    status_code = 409
    default_user_message = "Ya existe una caja creada para el periodo seleccionado."


class RegisterNotFound(LedgerError):
    status_code = 404
    default_user_message = "La caja solicitada no existe."


class RegisterNotOpen(LedgerError):
    default_user_message = "La caja no está abierta."


class InsufficientFunds(LedgerError):
    default_user_message = "La caja banco no tiene suficiente saldo para este egreso."


class InvalidMovement(LedgerError):
    status_code = 422
    default_user_message = "El movimiento no es válido. Revise el monto y el tipo."


class InvalidState(LedgerError):
    default_user_message = "La caja no está en un estado que permita esta operación."


class InvalidPeriod(LedgerError):
    status_code = 422
    default_user_message = "El periodo indicado no es válido (mes de 0 a 11)."


class SettlementError(LedgerError):
    """Fallo al liquidar una caja chica en caja banco. Se registra, no se propaga."""
    default_user_message = "No se pudo liquidar la caja chica en la caja banco."


class ConcurrentModification(LedgerError):
    status_code = 409
    default_user_message = "Otro usuario modificó la caja al mismo tiempo. Recargue e intente de nuevo."


async def ledger_error_handler(request: Request, exc: LedgerError):
    logger.info("%s en %s: %s", exc.error_code, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.user_message, "error_code": exc.error_code},
    )
