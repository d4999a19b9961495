"""
Custom exception hierarchy for Sileme.

Rule: every error has a machine-readable `code` string so clients
can branch on it without parsing English messages.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from starlette import status

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class SilemeException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class AlreadyCheckedInError(SilemeException):
    http_status = status.HTTP_409_CONFLICT
    code = "ALREADY_CHECKED_IN"

    def __init__(self, day: date):
        super().__init__(
            message="Already checked in today.",
            details={"day": str(day)},
        )


class NotFoundError(SilemeException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(
            message=f"{resource} {resource_id} not found.",
            details={"resource": resource, "id": resource_id},
        )


class NotAllowedError(SilemeException):
    http_status = status.HTTP_403_FORBIDDEN
    code = "NOT_ALLOWED"


@dataclass
class Violation:
    field: str
    message: str

    def to_dict(self) -> dict:
        return {"field": self.field, "message": self.message, "type": "value_error"}


class ValidationFailedError(SilemeException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "VALIDATION_ERROR"

    def __init__(self, violations: list[Violation]):
        self.violations = list(violations)
        super().__init__(
            message="Validation failed.",
            details={"errors": [v.to_dict() for v in self.violations]},
        )

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationFailedError":
        return cls([Violation(field=field, message=message)])


class LimitExceededError(SilemeException):
    http_status = status.HTTP_409_CONFLICT
    code = "LIMIT_EXCEEDED"

    def __init__(self, what: str, limit: int):
        super().__init__(
            message=f"At most {limit} {what} allowed.",
            details={"limit": limit},
        )


class NotAuthenticatedError(SilemeException):
    http_status = status.HTTP_401_UNAUTHORIZED
    code = "NOT_AUTHENTICATED"

    def __init__(self):
        super().__init__(message="Authentication required.")


class StorageUnavailableError(SilemeException):
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "STORAGE_UNAVAILABLE"

    def __init__(self, message: str = "Storage is unavailable."):
        super().__init__(message=message)


class DeliveryFailedError(SilemeException):
    """Raised by delivery sinks. Batch jobs log it and move on."""
    http_status = status.HTTP_502_BAD_GATEWAY
    code = "DELIVERY_FAILED"

    def __init__(self, channel: str, channel_key: str, reason: str):
        super().__init__(
            message=f"Delivery on {channel} to {channel_key} failed: {reason}",
            details={"channel": channel, "channel_key": channel_key},
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def sileme_exception_handler(request: Request, exc: SilemeException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def storage_exception_handler(request: Request, exc: OperationalError) -> JSONResponse:
    logger.error("storage error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=StorageUnavailableError.http_status,
        content=StorageUnavailableError().to_dict(),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
