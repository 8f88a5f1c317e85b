"""Custom exceptions for ride management.

Every error carries a machine-readable ``error_code`` and the HTTP status
the API layer should answer with.
"""


class RideServiceError(Exception):
    """Base class for errors raised by the ride services."""
    error_code = "ride_error"
    status_code = 500

    def __init__(self, message: str = "", error_code: str = None):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code

    def as_dict(self):
        return {
            "success": False,
            "error": self.error_code,
            "message": self.message,
        }


class ValidationError(RideServiceError):
    """Raised when input is missing or malformed. Not retryable as-is."""
    error_code = "validation_error"
    status_code = 400


class NotFoundError(RideServiceError):
    """Raised when a ride (or notification) cannot be found."""
    error_code = "not_found"
    status_code = 404


class ConflictError(RideServiceError):
    """Raised when a race was lost or an invariant would break. Re-fetch and retry."""
    error_code = "conflict"
    status_code = 409


class TransientStoreError(RideServiceError):
    """Raised when the database hiccups. Safe to retry with backoff."""
    error_code = "transient_store_error"
    status_code = 503
