"""Error Handlers — global exception handlers producing one error envelope.

Every failure leaves the API as::

    {success: false, message, error, timestamp, path, method, details?, stack?}

- ValidationError / RequestValidationError → 400, details = ordered messages
- AuthenticationError → 401
- NotFoundError → 404, message names the missing resource
- DuplicateError → 409
- ConfigurationError → 500, never names the missing setting
- HTTPException → its own status
- anything else → 500, sanitized message, stack only in development

Each failure is logged with method and path before the response is built.
"""

import logging
import re
import traceback
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from domain.model.errors import (
    AuthenticationError,
    ConfigurationError,
    DuplicateError,
    NotFoundError,
    ValidationError,
)
from utils.logging import get_context_logger

logger = logging.getLogger(__name__)

_ANSI_ESCAPE = re.compile(r'\x1b\[[0-?]*[ -/]*[@-~]|\x1b[@-_]')
_CONTROL_CHARS = re.compile(r'[\x00-\x1f\x7f-\x9f]')
_CONTROL_CHARS_KEEP_NEWLINE = re.compile(r'[\x00-\x09\x0b-\x1f\x7f-\x9f]')


def sanitize_message(text: Any) -> str:
    """Strip ANSI escape sequences and control characters from a message."""
    cleaned = _ANSI_ESCAPE.sub('', str(text))
    cleaned = cleaned.replace('\r\n', ' ').replace('\n', ' ').replace('\t', ' ')
    return _CONTROL_CHARS.sub('', cleaned).strip()


def format_stack(exc: BaseException) -> str:
    """Formatted traceback of exc with escape and control sequences removed."""
    stack = ''.join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return _CONTROL_CHARS_KEEP_NEWLINE.sub('', _ANSI_ESCAPE.sub('', stack)).strip()


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


def _is_development(request: Request) -> bool:
    settings = getattr(request.app.state, 'settings', None)
    return bool(settings and settings.is_development)


def build_error_response(
    request: Request,
    message: str,
    error: str,
    details: Any = None,
    stack: str | None = None,
) -> dict:
    """Build the error envelope for request."""
    body: dict[str, Any] = {
        "success": False,
        "message": sanitize_message(message),
        "error": sanitize_message(error),
        "timestamp": _timestamp(),
        "path": request.url.path,
        "method": request.method,
    }
    if details is not None:
        if isinstance(details, list):
            details = [sanitize_message(d) if isinstance(d, str) else d for d in details]
        body["details"] = details
    if stack:
        body["stack"] = stack
    return body


def _log_failure(request: Request, level: int, message: str, **fields: Any) -> None:
    """Log a failure with request context. A logging error never escapes."""
    try:
        log = get_context_logger(__name__, method=request.method, path=request.url.path)
        log.log(level, message, extra=fields)
    except Exception:  # noqa: BLE001 - the response must still be sent
        logger.exception("Failed to log request failure")


def request_validation_messages(exc: RequestValidationError) -> list[str]:
    """Readable messages for FastAPI's own body/path validation errors."""
    messages = []
    for err in exc.errors():
        loc = [str(part) for part in err.get('loc', ()) if part not in ('body', 'path', 'query')]
        field = '.'.join(loc)
        messages.append(f"{field}: {err['msg']}" if field else err['msg'])
    return messages


# ── handlers ─────────────────────────────────────────────


async def validation_error_handler(request: Request, exc: ValidationError):
    _log_failure(request, logging.WARNING, "Validation error", errors=exc.messages)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=build_error_response(
            request, "Validation Error", "Request validation failed", details=exc.messages,
        ),
    )


async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    messages = request_validation_messages(exc)
    _log_failure(request, logging.WARNING, "Request validation error", errors=messages)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=build_error_response(
            request, "Validation Error", "Request validation failed", details=messages,
        ),
    )


async def authentication_error_handler(request: Request, exc: AuthenticationError):
    _log_failure(request, logging.WARNING, "Authentication failed", reason=str(exc))
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content=build_error_response(
            request, str(exc), "Unauthorized", details=[exc.hint] if exc.hint else None,
        ),
        headers={"WWW-Authenticate": "Bearer"},
    )


async def not_found_error_handler(request: Request, exc: NotFoundError):
    _log_failure(request, logging.WARNING, f"{exc.resource} not found")
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content=build_error_response(
            request,
            f"{exc.resource} not found",
            f"The requested {exc.resource.lower()} could not be found",
        ),
    )


async def duplicate_error_handler(request: Request, exc: DuplicateError):
    _log_failure(request, logging.WARNING, "Conflict", reason=str(exc))
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=build_error_response(request, str(exc), "Resource already exists"),
    )


async def configuration_error_handler(request: Request, exc: ConfigurationError):
    _log_failure(request, logging.ERROR, "Server configuration error", reason=str(exc))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=build_error_response(
            request, "Server configuration error", "The server is not configured to handle this request",
        ),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    _log_failure(request, level, "HTTP error", statusCode=exc.status_code, reason=str(exc.detail))
    try:
        phrase = HTTPStatus(exc.status_code).phrase
    except ValueError:
        phrase = "Error"
    return JSONResponse(
        status_code=exc.status_code,
        content=build_error_response(request, str(exc.detail), phrase),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    _log_failure(
        request, logging.ERROR, "Unhandled error occurred",
        errorType=type(exc).__name__, error=sanitize_message(exc),
    )
    stack = format_stack(exc) if _is_development(request) else None
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=build_error_response(
            request, "Internal Server Error", str(exc) or type(exc).__name__, stack=stack,
        ),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(AuthenticationError, authentication_error_handler)
    app.add_exception_handler(NotFoundError, not_found_error_handler)
    app.add_exception_handler(DuplicateError, duplicate_error_handler)
    app.add_exception_handler(ConfigurationError, configuration_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
