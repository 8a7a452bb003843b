"""
Domain-specific exception hierarchy for the booking engine.

Booking rejections (capacity, advance notice, ...) are *not* exceptions;
see ``rejections.py``. The errors below signal malformed input or invalid
operations on stored reservations.
"""


class BookingEngineError(Exception):
    """Base class for all application-level errors."""


class ValidationError(BookingEngineError, ValueError):
    """Raised for malformed intervals, recurrence patterns or out-of-range inputs."""


class ResourceNotFoundError(BookingEngineError, LookupError):
    """Raised when a resource id is not known to the catalog."""

    def __init__(self, resource_id: str) -> None:
        super().__init__(f"Resource not found: {resource_id}")
        self.resource_id = resource_id


class ReservationNotFoundError(BookingEngineError, LookupError):
    """Raised when a reservation id is not known to the store."""

    def __init__(self, reservation_id: str) -> None:
        super().__init__(f"Reservation not found: {reservation_id}")
        self.reservation_id = reservation_id


class InvalidStatusTransitionError(BookingEngineError):
    """Raised when a lifecycle operation is not allowed in the current status."""

    def __init__(self, reservation_id: str, status: str, action: str) -> None:
        super().__init__(
            f"Reservation {reservation_id} cannot be {action} while {status}"
        )
        self.reservation_id = reservation_id
        self.status = status
        self.action = action


class ConfigError(BookingEngineError, ValueError):
    """Raised when a configuration or data file cannot be used."""
