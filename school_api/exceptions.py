"""
Domain exceptions raised by the scheduling core and the routers.

Each kind maps to one HTTP status in ``error_handlers.py``; the core never
raises a bare ``Exception`` for an expected outcome.
"""
from typing import Any, Dict, List, Optional


class DomainError(Exception):
    status_code = 500
    error = "Internal server error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(DomainError):
    """Missing required field, empty update or an inverted time window."""

    status_code = 400
    error = "Validation error"


class NotFoundError(DomainError):
    status_code = 404
    error = "Not found"


class ConflictError(DomainError):
    """
    Overlapping booking or uniqueness violation.

    ``conflicts`` holds the existing bookings that collide with the
    requested window (empty when the storage layer reported the conflict).
    """

    status_code = 409
    error = "Conflict"

    def __init__(self, message: str, conflicts: Optional[List[Any]] = None, details=None):
        super().__init__(message, details)
        self.conflicts = list(conflicts or [])


class ServiceUnavailableError(DomainError):
    status_code = 503
    error = "Service unavailable"
