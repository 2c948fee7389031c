"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .booking_service import (
    BookingCommitProtocol,
    BookingService,
    NotificationProtocol,
    ScheduleRepositoryProtocol,
)

__all__ = [
    "BookingCommitProtocol",
    "BookingService",
    "NotificationProtocol",
    "ScheduleRepositoryProtocol",
]
