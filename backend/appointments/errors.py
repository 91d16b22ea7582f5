# backend/appointments/errors.py
"""
Error taxonomy for the booking core.

The core raises these; main.py maps them onto HTTP responses.
"""


class BookingError(Exception):
    """Base class. `detail` is the user-facing message."""

    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class InvalidRequest(BookingError):
    """Malformed or missing input."""
    status_code = 400


class NotFound(BookingError):
    """Service, business or record absent."""
    status_code = 404


class OutOfWindow(BookingError):
    """Requested date is outside the bookable advance/future range."""
    status_code = 400


class Conflict(BookingError):
    """Duplicate or capacity violation at write time."""
    status_code = 409


class StorageError(BookingError):
    """Collaborator failure, not recoverable inside the core."""
    status_code = 503
