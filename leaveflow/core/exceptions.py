"""
Domain errors raised by the leave core.

Each error carries the HTTP status the API layer renders it with and a
stable machine-readable code. Services raise these; FastAPI handlers in
leaveflow.core.errors turn them into JSON responses.
"""
from typing import Any, Dict, Optional


class LeaveCoreError(Exception):
    """Base class for every error the leave core raises."""

    status_code: int = 400
    code: str = "LEAVE_ERROR"

    def __init__(self, detail: str, meta: Optional[Dict[str, Any]] = None):
        super().__init__(detail)
        self.detail = detail
        self.meta = meta or {}


class InvalidDateRange(LeaveCoreError):
    """end < start, or the range holds zero working days."""
    status_code = 400
    code = "INVALID_DATE_RANGE"


class MissingApprover(LeaveCoreError):
    """The org chart resolved no approver for the next routing step."""
    status_code = 422
    code = "MISSING_APPROVER"


class InsufficientBalance(LeaveCoreError):
    status_code = 409
    code = "INSUFFICIENT_BALANCE"


class InvalidConsumption(LeaveCoreError):
    status_code = 400
    code = "INVALID_CONSUMPTION"


class StaleState(LeaveCoreError):
    """Stored status differs from the status the caller expected. Safe to retry after re-reading."""
    status_code = 409
    code = "STALE_STATE"


class IllegalTransition(LeaveCoreError):
    """The requested transition is not allowed from the current status."""
    status_code = 409
    code = "ILLEGAL_TRANSITION"


class Unauthorized(LeaveCoreError):
    """Acting party is not the recorded approver/requester. Never retried."""
    status_code = 403
    code = "UNAUTHORIZED"


class NotFound(LeaveCoreError):
    status_code = 404
    code = "NOT_FOUND"


class PolicyViolation(LeaveCoreError):
    """A leave-type rule blocks the request (reason/attachment required, fixed duration exceeded)."""
    status_code = 400
    code = "POLICY_VIOLATION"


class OverlappingLeave(LeaveCoreError):
    """The dates overlap another open or approved request of the same employee."""
    status_code = 409
    code = "OVERLAPPING_LEAVE"
