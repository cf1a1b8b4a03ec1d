"""
Exception handlers producing the error envelope:

    {success: false, errorCode, message, [fields], [details], correlationId, timestamp}

Register these on a FastAPI app instance via `register_exception_handlers(app)`.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.env import is_local_env
from .core.errors import GENERIC_ERROR_MESSAGE, ApiError, ErrorCode, ValidationFailedError

logger = logging.getLogger("petbox_auth")

_LENGTH_TYPES = {"string_too_short", "string_too_long", "too_short", "too_long"}
_ENUM_TYPES = {"enum", "literal_error"}
_RANGE_PREFIXES = ("greater_than", "less_than", "multiple_of")
_FORMAT_TYPES = {"phone_invalid", "value_error", "url_parsing"}


def _validation_code(error_type: str) -> ErrorCode:
    """Map a pydantic error type onto a VALIDATION_* sub-code."""
    if error_type == "missing":
        return ErrorCode.VALIDATION_MISSING_FIELD
    if error_type == "string_pattern_mismatch":
        return ErrorCode.VALIDATION_PATTERN_MISMATCH
    if error_type in _LENGTH_TYPES:
        return ErrorCode.VALIDATION_LENGTH_INVALID
    if error_type in _ENUM_TYPES:
        return ErrorCode.VALIDATION_ENUM_INVALID
    if error_type.startswith(_RANGE_PREFIXES):
        return ErrorCode.VALIDATION_RANGE_INVALID
    if error_type in _FORMAT_TYPES or error_type.startswith(("date", "datetime", "time")):
        return ErrorCode.VALIDATION_FORMAT_ERROR
    if error_type.endswith("_type") or error_type.endswith("_parsing"):
        return ErrorCode.VALIDATION_TYPE_INVALID
    return ErrorCode.VALIDATION_INVALID_INPUT


def _field_name(loc) -> str:
    # loc is ("body", "fullName") or ("query", "x"); drop the source part
    parts = [str(p) for p in loc[1:]] if len(loc) > 1 else [str(p) for p in loc]
    return ".".join(parts)


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", None) or str(uuid.uuid4())


def _envelope(body: Dict[str, Any], request: Request, timestamp: str = None) -> Dict[str, Any]:
    body["correlationId"] = _correlation_id(request)
    body["timestamp"] = timestamp or datetime.now(timezone.utc).isoformat()
    return body


async def api_error_handler(request: Request, exc: ApiError):
    """Typed service errors. Non-operational ones are logged in full and masked."""
    exc.correlation_id = _correlation_id(request)
    if exc.is_operational:
        logger.info(
            f"[{exc.correlation_id}] {exc.error_code.value} on {request.method} {request.url.path}: {exc.message}"
        )
    else:
        original = getattr(exc, "original_error", None)
        logger.error(
            f"[{exc.correlation_id}] {exc.error_code.value} on {request.method} {request.url.path}: "
            f"{exc.message} (original: {type(original).__name__ if original else None}: {original})",
            exc_info=original or exc,
        )
    body = exc.to_dict()
    if not exc.is_operational and is_local_env():
        body["message"] = f"{GENERIC_ERROR_MESSAGE} ({exc.message})"
    return JSONResponse(status_code=exc.status_code, content=_envelope(body, request, exc.timestamp))


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Request body/query validation errors become VALIDATION_FAILED with field codes."""
    fields = [
        {"field": _field_name(err.get("loc", ())), "errorCode": _validation_code(err.get("type", "")).value}
        for err in exc.errors()
    ]
    error = ValidationFailedError(fields)
    return await api_error_handler(request, error)


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    """Framework-level HTTP errors (unknown route, wrong method)."""
    body = {
        "success": False,
        "errorCode": ErrorCode.REQUEST_INVALID.value,
        "message": exc.detail if isinstance(exc.detail, str) else "Invalid request",
    }
    return JSONResponse(status_code=exc.status_code, content=_envelope(body, request), headers=exc.headers)


async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors"""
    correlation_id = _correlation_id(request)
    logger.error(
        f"[{correlation_id}] Unhandled exception on {request.method} {request.url.path}: {exc}",
        exc_info=exc,
    )

    message = GENERIC_ERROR_MESSAGE
    if is_local_env():
        # In local/dev, return detailed error for debugging
        message = f"{GENERIC_ERROR_MESSAGE} ({type(exc).__name__}: {exc})"

    body = {
        "success": False,
        "errorCode": ErrorCode.SYSTEM_INTERNAL_ERROR.value,
        "message": message,
    }
    return JSONResponse(status_code=500, content=_envelope(body, request))


def register_exception_handlers(app):
    """Register all exception handlers on the given FastAPI app."""
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)
