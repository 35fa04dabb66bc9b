"""Error normalization and handlers."""

import logging
from typing import Optional
from uuid import uuid4

from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException
from fastapi.responses import JSONResponse
from starlette.requests import Request

from poetrysuite.core.logging import LOGGER_NAME, get_request_id


_logger = logging.getLogger(LOGGER_NAME)


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(self, message: str, *, code: Optional[str] = None, status_code: Optional[int] = None, request_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.request_id = request_id


class ValidationError(AppError, ValueError):
    code = "validation_error"
    status_code = 400


class FetchError(AppError):
    """The record store could not produce a snapshot."""
    code = "fetch_failed"
    status_code = 503


class MalformedEventError(AppError, ValueError):
    """A change-feed message is missing fields or has the wrong shape."""
    code = "malformed_event"
    status_code = 422


def _extract_request_id(request: Request, fallback: Optional[str] = None) -> str:
    return (
        getattr(request.state, "request_id", None)
        or get_request_id()
        or fallback
        or str(uuid4())
    )


def _error_response(request: Request, status: int, code: str, message: str, rid: Optional[str] = None) -> JSONResponse:
    """Render the shared error envelope and echo the request id."""
    rid = rid or _extract_request_id(request)
    body = {
        "error": {"code": code, "message": message, "request_id": rid},
        "detail": message,
    }
    return JSONResponse(status_code=status, content=body, headers={"x-request-id": rid})


async def app_error_handler(request: Request, exc: AppError):
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    _logger.log(
        level,
        "app.error",
        extra={"error_code": exc.code, "error_message": exc.message, "status": exc.status_code, "path": request.url.path},
    )
    return _error_response(request, exc.status_code, exc.code, exc.message, exc.request_id)


async def http_error_handler(request: Request, exc: HTTPException):
    code = "not_found" if exc.status_code == 404 else "http_error"
    _logger.warning("http.error", extra={"error_code": code, "status": exc.status_code, "path": request.url.path})
    return _error_response(request, exc.status_code, code, str(exc.detail or "HTTP error"))


async def request_validation_handler(request: Request, exc: RequestValidationError):
    # Query parameters that fail type/constraint checks (e.g. empty user_id)
    fields = sorted({".".join(str(p) for p in err.get("loc", ())[1:]) for err in exc.errors()})
    message = "Invalid request parameters: " + ", ".join(f for f in fields if f)
    _logger.warning("request.invalid", extra={"error_code": ValidationError.code, "path": request.url.path})
    return _error_response(request, 422, ValidationError.code, message)


async def unhandled_exception_handler(request: Request, exc: Exception):
    _logger.error("unhandled.exception", exc_info=exc, extra={"error_code": "internal_error", "path": request.url.path})
    return _error_response(request, 500, "internal_error", "Unexpected error")
