"""
Custom exception hierarchy for the Home History API.

Rule: every HTTP error has a machine-readable `code` string so clients
can branch on it without parsing English messages.

Geocoding provider failures never appear here: they are absorbed by the
enrichment layer and surface only as absent fields in the payload.
"""
from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class HomeHistoryException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {
            "success": False,
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            payload["details"] = self.details
        return payload


class PropertyNotFoundError(HomeHistoryException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "PROPERTY_NOT_FOUND"

    def __init__(self, property_id: str):
        super().__init__(
            message="Property not found",
            details={"id": property_id},
        )


class MissingParameterError(HomeHistoryException):
    http_status = status.HTTP_400_BAD_REQUEST
    code = "MISSING_PARAMETER"

    def __init__(self, message: str, parameter: str):
        super().__init__(message=message, details={"parameter": parameter})


class PropertyPersistenceError(HomeHistoryException):
    """A write on the create / append paths failed in the store."""
    http_status = status.HTTP_400_BAD_REQUEST
    code = "PROPERTY_PERSISTENCE_ERROR"

    def __init__(self, message: str, error: str | None = None):
        super().__init__(
            message=message,
            details={"error": error} if error else {},
        )


class EnrichmentError(HomeHistoryException):
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "ENRICHMENT_ERROR"

    def __init__(self, error: str):
        super().__init__(
            message="Failed to enrich address",
            details={"error": error},
        )


class CacheOperationError(HomeHistoryException):
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "CACHE_ERROR"

    def __init__(self, message: str, error: str):
        super().__init__(message=message, details={"error": error})


class BackfillError(HomeHistoryException):
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "BACKFILL_ERROR"

    def __init__(self, message: str, error: str):
        super().__init__(message=message, details={"error": error})


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def home_history_exception_handler(
    request: Request, exc: HomeHistoryException
) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 400 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
            "error": str(exc),
        },
    )
