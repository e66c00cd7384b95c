"""
Shared error handling for SiteFlow services.

Every failure an endpoint can report is drawn from the closed ``ErrorCode``
set so clients can distinguish failure modes without parsing messages.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Closed set of error codes surfaced in error envelopes."""

    # Authentication & authorization
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    INVALID_TOKEN = "INVALID_TOKEN"

    # Validation
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"

    # Resources
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    RESOURCE_ALREADY_EXISTS = "RESOURCE_ALREADY_EXISTS"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"

    # Business logic
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"
    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"

    # System
    INTERNAL_ERROR = "INTERNAL_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    VERSION_CONFLICT = "VERSION_CONFLICT"


ERROR_MESSAGES: Dict[ErrorCode, str] = {
    ErrorCode.UNAUTHORIZED: "Authentication required",
    ErrorCode.FORBIDDEN: "Insufficient permissions",
    ErrorCode.INVALID_TOKEN: "Invalid or expired token",
    ErrorCode.VALIDATION_ERROR: "Validation failed",
    ErrorCode.INVALID_INPUT: "Invalid input data",
    ErrorCode.MISSING_REQUIRED_FIELD: "Required field is missing",
    ErrorCode.RESOURCE_NOT_FOUND: "Resource not found",
    ErrorCode.RESOURCE_ALREADY_EXISTS: "Resource already exists",
    ErrorCode.RESOURCE_CONFLICT: "Resource conflict",
    ErrorCode.INSUFFICIENT_PERMISSIONS: "Insufficient permissions for this operation",
    ErrorCode.BUSINESS_RULE_VIOLATION: "Business rule violation",
    ErrorCode.QUOTA_EXCEEDED: "Quota exceeded",
    ErrorCode.INTERNAL_ERROR: "Internal server error",
    ErrorCode.DATABASE_ERROR: "Database operation failed",
    ErrorCode.EXTERNAL_SERVICE_ERROR: "External service error",
    ErrorCode.RATE_LIMIT_EXCEEDED: "Rate limit exceeded",
    ErrorCode.VERSION_CONFLICT: "Version conflict detected",
}

HTTP_STATUS: Dict[ErrorCode, int] = {
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.INVALID_TOKEN: 401,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.MISSING_REQUIRED_FIELD: 400,
    ErrorCode.RESOURCE_NOT_FOUND: 404,
    ErrorCode.RESOURCE_ALREADY_EXISTS: 409,
    ErrorCode.RESOURCE_CONFLICT: 409,
    ErrorCode.INSUFFICIENT_PERMISSIONS: 403,
    ErrorCode.BUSINESS_RULE_VIOLATION: 422,
    ErrorCode.QUOTA_EXCEEDED: 429,
    ErrorCode.INTERNAL_ERROR: 500,
    ErrorCode.DATABASE_ERROR: 500,
    ErrorCode.EXTERNAL_SERVICE_ERROR: 502,
    ErrorCode.RATE_LIMIT_EXCEEDED: 429,
    ErrorCode.VERSION_CONFLICT: 409,
}


def default_message(code: ErrorCode) -> str:
    """Canned message for an error code."""
    return ERROR_MESSAGES[ErrorCode(code)]


def status_for(code: ErrorCode) -> int:
    """HTTP status an error code is reported with."""
    return HTTP_STATUS[ErrorCode(code)]


class SiteFlowError(Exception):
    """Base exception for SiteFlow services."""

    def __init__(
        self,
        code: ErrorCode,
        message: Optional[str] = None,
        details: Optional[Any] = None,
        status_code: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.code = ErrorCode(code)
        self.message = message or default_message(self.code)
        self.details = details
        self.status_code = status_code or status_for(self.code)
        self.headers = headers or {}
        super().__init__(self.message)

    def to_response(self, version: str = "v1"):
        """Convert to an error envelope."""
        from shared.envelope import error

        return error(self.code, self.message, self.details, version=version)


class AuthenticationError(SiteFlowError):
    """Authentication-related errors."""

    def __init__(self, message: Optional[str] = None, details: Optional[Any] = None):
        super().__init__(ErrorCode.UNAUTHORIZED, message, details)


class AuthorizationError(SiteFlowError):
    """Authorization-related errors."""

    def __init__(self, message: Optional[str] = None, details: Optional[Any] = None):
        super().__init__(ErrorCode.FORBIDDEN, message, details)


class ValidationError(SiteFlowError):
    """Validation-related errors."""

    def __init__(self, message: Optional[str] = None, details: Optional[Any] = None):
        super().__init__(ErrorCode.VALIDATION_ERROR, message, details)


class NotFoundError(SiteFlowError):
    """Requested resource does not exist or is not visible to the caller."""

    def __init__(self, resource: str, details: Optional[Any] = None):
        super().__init__(ErrorCode.RESOURCE_NOT_FOUND, f"{resource} not found", details)


class ConflictError(SiteFlowError):
    """Write conflicts with the current state of a resource."""

    def __init__(self, message: Optional[str] = None, details: Optional[Any] = None):
        super().__init__(ErrorCode.RESOURCE_CONFLICT, message, details)


class DatabaseError(SiteFlowError):
    """Persistence layer failures."""

    def __init__(self, message: Optional[str] = None, details: Optional[Any] = None):
        super().__init__(ErrorCode.DATABASE_ERROR, message, details)


class ExternalServiceError(SiteFlowError):
    """External service errors."""

    def __init__(self, service: str, message: str = "External service error", details: Optional[Any] = None):
        super().__init__(ErrorCode.EXTERNAL_SERVICE_ERROR, f"{service}: {message}", details)


class RateLimitError(SiteFlowError):
    """Rate limiting errors."""

    def __init__(
        self,
        message: str = "Too many requests",
        details: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(ErrorCode.RATE_LIMIT_EXCEEDED, message, details, headers=headers)
