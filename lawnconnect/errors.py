"""
Errores de aplicación.

Los servicios lanzan ``AppError`` con un ``ErrorKind``; los handlers
registrados en la app lo traducen a un código HTTP y al sobre JSON estándar.
"""
from enum import Enum
from typing import Any, Optional
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .responses import json_error

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    not_found = "not_found"
    duplicate = "duplicate"
    invalid_input = "invalid_input"
    invalid_state = "invalid_state"
    conflict = "conflict"
    forbidden = "forbidden"
    unauthenticated = "unauthenticated"
    internal = "internal"


STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.not_found: status.HTTP_404_NOT_FOUND,
    ErrorKind.duplicate: status.HTTP_409_CONFLICT,
    ErrorKind.invalid_input: status.HTTP_400_BAD_REQUEST,
    ErrorKind.invalid_state: status.HTTP_409_CONFLICT,
    ErrorKind.conflict: status.HTTP_409_CONFLICT,
    ErrorKind.forbidden: status.HTTP_403_FORBIDDEN,
    ErrorKind.unauthenticated: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.internal: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class AppError(Exception):
    def __init__(self, kind: ErrorKind, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]

    def __repr__(self) -> str:
        return f"AppError({self.kind.value!r}, {self.message!r})"


async def _app_error_handler(request: Request, exc: AppError):
    if exc.kind == ErrorKind.internal:
        # El detalle ya se registró donde ocurrió; al cliente solo el mensaje genérico
        return json_error(exc.status_code, "Error interno del servidor", {"kind": exc.kind.value})
    error: dict[str, Any] = {"kind": exc.kind.value}
    if exc.details is not None:
        error["details"] = exc.details
    return json_error(exc.status_code, exc.message, error)


def _error_details(exc: RequestValidationError) -> list[dict[str, Any]]:
    # Sin "input" ni "ctx": pueden traer valores no serializables (inf, excepciones)
    return [{"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")} for e in exc.errors()]


async def _validation_error_handler(request: Request, exc: RequestValidationError):
    return json_error(
        status.HTTP_400_BAD_REQUEST,
        "Datos de entrada inválidos",
        {"kind": ErrorKind.invalid_input.value, "details": _error_details(exc)},
    )


async def _http_error_handler(request: Request, exc: StarletteHTTPException):
    return json_error(exc.status_code, str(exc.detail), {"status": exc.status_code})


async def _unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Error no controlado en {request.method} {request.url.path}: {exc}", exc_info=exc)
    return json_error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Error interno del servidor",
        {"kind": ErrorKind.internal.value},
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, _app_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
