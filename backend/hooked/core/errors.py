"""
Centralized error handling for API routes.
Service code raises the small exception types below; routes map them with to_http so they stay thin.
"""
from __future__ import annotations

from fastapi import HTTPException

# ---------------------------------------------------------------------------
# Constants: status codes
# ---------------------------------------------------------------------------

STATUS_BAD_REQUEST = 400
STATUS_FORBIDDEN = 403
STATUS_INTERNAL_ERROR = 500


class InvalidRequest(ValueError):
    """Caller sent a request the pipeline cannot act on (missing/invalid fields)."""


class PermissionDenied(Exception):
    """Missing or wrong shared secret."""


# ---------------------------------------------------------------------------
# Error rules: (exception type, status_code). First match wins.
# Add new rules here instead of scattering checks in routes.
# ---------------------------------------------------------------------------

ERROR_RULES: list[tuple[type[Exception], int]] = [
    (InvalidRequest, STATUS_BAD_REQUEST),
    (PermissionDenied, STATUS_FORBIDDEN),
]


def to_http(exc: Exception) -> HTTPException:
    """
    Map a service exception into an HTTPException.
    Uses ERROR_RULES for known types; otherwise returns 500 with the exception message.
    """
    for exc_type, status_code in ERROR_RULES:
        if isinstance(exc, exc_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=STATUS_INTERNAL_ERROR, detail=str(exc) or "Unknown error")
