"""
Domain layer - Pure business logic without external dependencies.
"""

from .availability import bookable_dates, is_bookable
from .conflicts import conflicting, overlaps
from .models import (
    BookingConfirmation,
    BookingRequest,
    BusinessHours,
    ConfirmationNotice,
    ContactInfo,
    ExistingAppointment,
    ScheduleConfig,
    Service,
    TimeRange,
    TimeSlot,
)
from .slot_generator import SlotGenerator, generate_slots
from .workflow import BookingStep, BookingWorkflow

__all__ = [
    "BookingConfirmation",
    "BookingRequest",
    "BookingStep",
    "BookingWorkflow",
    "BusinessHours",
    "ConfirmationNotice",
    "ContactInfo",
    "ExistingAppointment",
    "ScheduleConfig",
    "Service",
    "SlotGenerator",
    "TimeRange",
    "TimeSlot",
    "bookable_dates",
    "conflicting",
    "generate_slots",
    "is_bookable",
    "overlaps",
]
