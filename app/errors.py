"""
Domain errors for the pin service and the handlers that render them.

Services raise these; the handlers registered in app.main turn them into
    {"error": {"code": "...", "message": "..."}}
with the matching HTTP status. Anything else becomes a generic 500.
"""
import logging
from enum import Enum

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    MISSING_MIRROR_DATA = "MISSING_MIRROR_DATA"
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class PinServiceError(Exception):
    code = ErrorCode.INTERNAL_ERROR
    status_code = 500
    headers: dict | None = None

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PinServiceError):
    code = ErrorCode.VALIDATION_ERROR
    status_code = 400


class MissingMirrorDataError(ValidationError):
    """A write targeted an external pin but gave us nothing to mirror it from."""
    code = ErrorCode.MISSING_MIRROR_DATA


class UnauthorizedError(PinServiceError):
    """Missing, expired or unreadable bearer token."""
    code = ErrorCode.UNAUTHORIZED
    status_code = 401
    headers = {"WWW-Authenticate": "Bearer"}


class NotFoundError(PinServiceError):
    """Absent, or not owned by the caller. The two are deliberately indistinguishable."""
    code = ErrorCode.NOT_FOUND
    status_code = 404


class ConflictError(PinServiceError):
    code = ErrorCode.CONFLICT
    status_code = 409


class UnavailableError(PinServiceError):
    code = ErrorCode.SERVICE_UNAVAILABLE
    status_code = 503


def error_response(
    code: ErrorCode, message: str, status_code: int, headers: dict | None = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code.value, "message": message}},
        headers=headers,
    )


async def _pin_service_error_handler(request: Request, exc: PinServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.code.value, exc.message)
    return error_response(exc.code, exc.message, exc.status_code, exc.headers)


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request"
    return error_response(ErrorCode.VALIDATION_ERROR, message, 400)


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(ErrorCode.INTERNAL_ERROR, "Internal server error", 500)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PinServiceError, _pin_service_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
