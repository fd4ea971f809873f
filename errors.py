"""
Error taxonomy for the staff records service.

Every error raised by the service or transfer layers carries the HTTP status
it maps to, so the API can answer with the standard failure envelope.
"""
from typing import Any, Optional


class StaffServiceError(Exception):
    status_code = 400

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(StaffServiceError):
    """Input rejected (empty name, duplicate batch number, bad bulk payload)."""
    status_code = 400


class NotFoundError(StaffServiceError):
    status_code = 404


class ConflictError(StaffServiceError):
    """Duplicate named value, or an import that needs explicit confirmation."""
    status_code = 409


class ParseError(StaffServiceError):
    """Malformed import file."""
    status_code = 400
