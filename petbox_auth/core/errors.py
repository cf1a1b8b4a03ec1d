"""
Error taxonomy for the identity service.

Error Hierarchy:
- ApiError: base, carries HTTP status and a machine-readable error code
- Operational errors (4xx): safe to surface verbatim to the client
- System errors (5xx): non-operational, logged with the original error and
  surfaced to the client as a generic message

Usage:
    from petbox_auth.core.errors import UserNotFoundError

    raise UserNotFoundError("Account not found")
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(str, Enum):
    REQUEST_INVALID = "REQUEST_INVALID"
    REQUEST_EXCEED_ALLOWED = "REQUEST_EXCEED_ALLOWED"

    TOKEN_INVALID = "TOKEN_INVALID"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"

    OTP_INVALID = "OTP_INVALID"
    OTP_EXPIRED = "OTP_EXPIRED"

    USER_NOT_FOUND = "USER_NOT_FOUND"
    USER_INVALID_CREDENTIALS = "USER_INVALID_CREDENTIALS"
    USER_UNAUTHORIZED = "USER_UNAUTHORIZED"
    USER_FORBIDDEN = "USER_FORBIDDEN"
    USER_ALREADY_EXISTS = "USER_ALREADY_EXISTS"

    VALIDATION_FAILED = "VALIDATION_FAILED"
    VALIDATION_INVALID_INPUT = "VALIDATION_INVALID_INPUT"
    VALIDATION_MISSING_FIELD = "VALIDATION_MISSING_FIELD"
    VALIDATION_FORMAT_ERROR = "VALIDATION_FORMAT_ERROR"
    VALIDATION_PATTERN_MISMATCH = "VALIDATION_PATTERN_MISMATCH"
    VALIDATION_LENGTH_INVALID = "VALIDATION_LENGTH_INVALID"
    VALIDATION_RANGE_INVALID = "VALIDATION_RANGE_INVALID"
    VALIDATION_TYPE_INVALID = "VALIDATION_TYPE_INVALID"
    VALIDATION_ENUM_INVALID = "VALIDATION_ENUM_INVALID"

    SYSTEM_INTERNAL_ERROR = "SYSTEM_INTERNAL_ERROR"
    SYSTEM_EXTERNAL_ERROR = "SYSTEM_EXTERNAL_ERROR"


GENERIC_ERROR_MESSAGE = "An unexpected error occurred. Please try again later."


class ApiError(Exception):
    """
    Base class for all errors raised by the service layer.

    Subclasses pin `status_code`, `error_code` and a default message.
    """
    status_code = 400
    error_code = ErrorCode.REQUEST_INVALID
    message = "Invalid request"
    is_operational = True

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.message
        self.details = details
        self.correlation_id: Optional[str] = None
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Client-facing body (without correlation id, added by the handler)."""
        if not self.is_operational:
            return {
                "success": False,
                "errorCode": ErrorCode.SYSTEM_INTERNAL_ERROR.value,
                "message": GENERIC_ERROR_MESSAGE,
            }
        body: Dict[str, Any] = {
            "success": False,
            "errorCode": self.error_code.value,
            "message": self.message,
        }
        if self.details:
            body["details"] = self.details
        return body


class RequestInvalidError(ApiError):
    status_code = 400
    error_code = ErrorCode.REQUEST_INVALID
    message = "Invalid request"


class RequestExceedAllowedError(ApiError):
    status_code = 429
    error_code = ErrorCode.REQUEST_EXCEED_ALLOWED
    message = "Too many requests"


class TokenInvalidError(ApiError):
    status_code = 401
    error_code = ErrorCode.TOKEN_INVALID
    message = "Invalid token"


class TokenExpiredError(ApiError):
    status_code = 410
    error_code = ErrorCode.TOKEN_EXPIRED
    message = "Token has expired"


class OtpInvalidError(ApiError):
    status_code = 400
    error_code = ErrorCode.OTP_INVALID
    message = "Invalid OTP code"


class OtpExpiredError(ApiError):
    status_code = 400
    error_code = ErrorCode.OTP_EXPIRED
    message = "OTP has expired, please request a new code"


class UserNotFoundError(ApiError):
    status_code = 404
    error_code = ErrorCode.USER_NOT_FOUND
    message = "Account not found"


class UserInvalidCredentialsError(ApiError):
    status_code = 401
    error_code = ErrorCode.USER_INVALID_CREDENTIALS
    message = "Invalid credentials"


class UserUnauthorizedError(ApiError):
    status_code = 401
    error_code = ErrorCode.USER_UNAUTHORIZED
    message = "Unauthorized"


class UserForbiddenError(ApiError):
    status_code = 403
    error_code = ErrorCode.USER_FORBIDDEN
    message = "Forbidden"


class UserAlreadyExistsError(ApiError):
    status_code = 409
    error_code = ErrorCode.USER_ALREADY_EXISTS
    message = "Account already exists"


class ValidationFailedError(ApiError):
    """Field-level validation failure; `fields` is a list of {field, errorCode}."""
    status_code = 422
    error_code = ErrorCode.VALIDATION_FAILED
    message = "Input validation failed"

    def __init__(self, fields: List[Dict[str, str]], message: Optional[str] = None):
        super().__init__(message)
        self.fields = fields

    @classmethod
    def missing(cls, field: str) -> "ValidationFailedError":
        return cls([{"field": field, "errorCode": ErrorCode.VALIDATION_MISSING_FIELD.value}])

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["fields"] = self.fields
        return body


class BaseSystemError(ApiError):
    """Base for non-operational errors. Keeps the wrapped exception for logging."""
    status_code = 500
    error_code = ErrorCode.SYSTEM_INTERNAL_ERROR
    message = "An unexpected error occurred internally"
    is_operational = False

    def __init__(self, message: Optional[str] = None, original_error: Optional[BaseException] = None):
        super().__init__(message)
        self.original_error = original_error


class SystemInternalError(BaseSystemError):
    status_code = 500
    error_code = ErrorCode.SYSTEM_INTERNAL_ERROR


class SystemExternalError(BaseSystemError):
    status_code = 502
    error_code = ErrorCode.SYSTEM_EXTERNAL_ERROR
    message = "Upstream provider failure"
