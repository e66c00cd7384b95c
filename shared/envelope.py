"""
Uniform success/error response envelope shared by every API route.

    {"success": true,  "data": ..., "meta": {"version", "timestamp", "pagination"?}}
    {"success": false, "error": {"code", "message", "details"?}, "meta": {...}}
"""

import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Union

from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from shared.errors import ErrorCode, default_message

DEFAULT_VERSION = "v1"


class _EnvelopeModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)


class PaginationMeta(_EnvelopeModel):
    """Pagination details for list responses."""

    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)
    total: int = Field(..., ge=0)
    total_pages: int = Field(..., ge=0)
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "PaginationMeta":
        total_pages = math.ceil(total / limit) if total else 0
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


class Meta(_EnvelopeModel):
    version: str = DEFAULT_VERSION
    timestamp: str
    pagination: Optional[PaginationMeta] = None


class ErrorBody(_EnvelopeModel):
    code: ErrorCode
    message: str
    details: Optional[Any] = None


class SuccessEnvelope(_EnvelopeModel):
    success: Literal[True] = True
    data: Any = None
    meta: Meta

    def to_dict(self) -> Dict[str, Any]:
        payload = self.model_dump(mode="json", by_alias=True)
        if payload["meta"].get("pagination") is None:
            payload["meta"].pop("pagination", None)
        return payload


class ErrorEnvelope(_EnvelopeModel):
    success: Literal[False] = False
    error: ErrorBody
    meta: Meta

    def to_dict(self) -> Dict[str, Any]:
        payload = self.model_dump(mode="json", by_alias=True)
        payload["meta"].pop("pagination", None)
        if payload["error"].get("details") is None:
            payload["error"].pop("details", None)
        return payload


ApiResponse = Union[SuccessEnvelope, ErrorEnvelope]


def format_timestamp(value: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    if value is None:
        value = datetime.now(timezone.utc)
    elif value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def success(
    data: Any,
    pagination: Optional[PaginationMeta] = None,
    *,
    version: str = DEFAULT_VERSION,
    now: Optional[datetime] = None,
) -> SuccessEnvelope:
    """Wrap a payload in a success envelope."""
    return SuccessEnvelope(
        data=data,
        meta=Meta(version=version, timestamp=format_timestamp(now), pagination=pagination),
    )


def error(
    code: ErrorCode,
    message: Optional[str] = None,
    details: Optional[Any] = None,
    *,
    version: str = DEFAULT_VERSION,
    now: Optional[datetime] = None,
) -> ErrorEnvelope:
    """Build an error envelope; the message defaults to the code's canned text."""
    code = ErrorCode(code)
    return ErrorEnvelope(
        error=ErrorBody(code=code, message=message or default_message(code), details=details),
        meta=Meta(version=version, timestamp=format_timestamp(now)),
    )


def validation_error(errors: List[Any], *, version: str = DEFAULT_VERSION) -> ErrorEnvelope:
    return error(ErrorCode.VALIDATION_ERROR, "Validation failed", errors, version=version)


def not_found(resource: str, *, version: str = DEFAULT_VERSION) -> ErrorEnvelope:
    return error(ErrorCode.RESOURCE_NOT_FOUND, f"{resource} not found", version=version)


def unauthorized(*, version: str = DEFAULT_VERSION) -> ErrorEnvelope:
    return error(ErrorCode.UNAUTHORIZED, version=version)


def forbidden(*, version: str = DEFAULT_VERSION) -> ErrorEnvelope:
    return error(ErrorCode.FORBIDDEN, version=version)


def internal_error(exc: Optional[BaseException] = None, *, version: str = DEFAULT_VERSION) -> ErrorEnvelope:
    """Generic internal error; the exception message is only exposed in details."""
    details = str(exc) if exc is not None else None
    return error(ErrorCode.INTERNAL_ERROR, details=details, version=version)


def envelope_response(
    envelope: ApiResponse,
    status_code: int = 200,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Render an envelope as a FastAPI JSON response."""
    return JSONResponse(content=envelope.to_dict(), status_code=status_code, headers=headers)
