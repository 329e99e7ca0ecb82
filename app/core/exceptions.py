# app/core/exceptions.py

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.core.logging import get_logger

log = get_logger(__name__)


class FinanceError(Exception):
    """Error de dominio con su código HTTP asociado."""

    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(FinanceError):
    status_code = 400


class NotFound(FinanceError):
    status_code = 404


class AlreadyComplete(FinanceError):
    status_code = 409


class InvalidTransition(FinanceError):
    status_code = 409


class PersistenceError(FinanceError):
    status_code = 503


async def finance_error_handler(request: Request, exc: FinanceError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


async def persistence_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Fallas del almacenamiento fuera de un lote: la sesión ya hizo rollback."""
    log.error("request.persistence_failed", path=request.url.path, error=str(exc))
    error = PersistenceError("Error de persistencia, intente nuevamente.")
    return JSONResponse(status_code=error.status_code, content={"detail": error.detail})
