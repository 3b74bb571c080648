"""
Errores de dominio del motor de conciliación.

Los servicios levantan estas excepciones; `register_exception_handlers`
las traduce a respuestas JSON con el código HTTP de cada clase.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class DomainError(Exception):
    """Base exception for reconciliation operations"""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    """Rejected input: nothing was written"""
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class MixedClientError(ValidationError):
    """Selected entries belong to more than one client"""
    pass


class NoBillableItems(ValidationError):
    """No delivered item with a valid price in the selection"""
    pass


class ForbiddenError(DomainError):
    """Role is not allowed to perform the operation"""
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(DomainError):
    """Base exception for concurrent modification conflicts"""
    status_code = status.HTTP_409_CONFLICT


class ConcurrentInvoicingConflict(ConflictError):
    """Entry is already linked to an active document"""
    pass


class EntryLockedError(ConflictError):
    """Entry is invoiced and cannot receive deliveries or edits"""
    pass


class ConcurrentModificationError(ConflictError):
    """Optimistic version check failed on an entry"""
    pass


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if exc.status_code >= status.HTTP_409_CONFLICT:
        logger.warning(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": type(exc).__name__},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
