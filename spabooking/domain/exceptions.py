"""
Domain-specific exception hierarchy for the booking engine.
"""

from __future__ import annotations

from typing import Optional


class BookingError(Exception):
    """Base class for all booking-related errors."""


class ConfigUnavailableError(BookingError):
    """Raised when a provider's booking page is disabled or does not exist."""


class SlotNoLongerAvailable(BookingError):
    """Raised when a chosen slot cannot be booked anymore."""


class SlotConflictError(SlotNoLongerAvailable):
    """Raised by the commit service when the slot was taken in the meantime."""


class BookingValidationError(BookingError):
    """Raised when a booking request or contact form is incomplete or malformed."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class TransientError(BookingError):
    """Raised on infrastructure failures. The user may retry manually."""


class InvalidTransitionError(BookingError):
    """Raised when a workflow operation is not allowed in the current state."""


class NotificationError(BookingError):
    """Raised when a confirmation notice could not be delivered."""
