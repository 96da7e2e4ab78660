"""Service layer error taxonomy.

Services raise ServiceError instead of building HTTP responses. The app-level
handlers translate the kind into a status code exactly once.
"""
import logging
from enum import Enum

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

GENERIC_SERVER_ERROR = "Erreur serveur"


class ErrorKind(str, Enum):
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    FORBIDDEN = "FORBIDDEN"
    RATE_LIMITED = "RATE_LIMITED"
    INTERNAL = "INTERNAL"


_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.CONFLICT: 409,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.INTERNAL: 500,
}


class ServiceError(Exception):
    def __init__(self, message: str, kind: ErrorKind | str, details: list[str] | None = None):
        super().__init__(message)
        self.message = message
        self.kind = ErrorKind(kind)
        self.details = details

    def __repr__(self) -> str:
        return f"ServiceError({self.message!r}, {self.kind.value}, details={self.details!r})"


def kind_to_status(kind: ErrorKind | str) -> int:
    return _STATUS_BY_KIND[ErrorKind(kind)]


def error_body(err: ServiceError) -> dict:
    body: dict = {"error": err.message}
    # details are only meaningful for aggregate validation failures
    if isinstance(err.details, list) and err.details:
        body["details"] = [str(d) for d in err.details]
    return body


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    status = kind_to_status(exc.kind)
    if status >= 500:
        logger.error(
            "service error: %s", exc.message,
            extra={"kind": exc.kind.value, "route": request.url.path},
            exc_info=exc.__cause__ or exc,
        )
    else:
        logger.info(
            "request rejected: %s", exc.message,
            extra={"kind": exc.kind.value, "route": request.url.path},
        )
    return JSONResponse(error_body(exc), status_code=status)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error", extra={"route": request.url.path})
    return JSONResponse({"error": GENERIC_SERVER_ERROR}, status_code=500)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
