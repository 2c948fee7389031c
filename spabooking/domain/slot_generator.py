"""
Core business logic for generating bookable time slots.

This is the heart of the application - pure domain logic without any
external dependencies (no API calls, no database, no I/O). The current
instant is always passed in; the wall clock is never read here.
"""

import logging
from typing import Iterable, List, Optional

from pendulum import Date, DateTime

from .availability import is_bookable
from .conflicts import conflicting, overlaps
from .models import ExistingAppointment, ScheduleConfig, Service, TimeRange, TimeSlot

logger = logging.getLogger(__name__)


class SlotGenerator:
    """
    Generates the candidate time grid for one provider.

    Algorithm:
    1. Reject dates that are not bookable at all
    2. Anchor the weekday's business hours to the date
    3. Keep only active appointments touching the business-hours window
    4. Walk the window in steps of service duration plus buffer
    5. Mark each slot unavailable if it starts inside the notice window
       or overlaps an existing appointment
    """

    def __init__(self, config: ScheduleConfig):
        self.config = config

    def generate_slots(
        self,
        date: Date,
        service: Service,
        existing_appointments: Iterable[ExistingAppointment],
        now: DateTime
    ) -> List[TimeSlot]:
        """
        Generate all slots for a date and service.

        Args:
            date: Calendar date in the provider's timezone
            service: The service being booked
            existing_appointments: Appointments already on the calendar
            now: The current instant

        Returns:
            List of TimeSlot objects, in start order. Empty if the date
            is not bookable.
        """
        hours = self.config.hours_for(date)
        if hours is None or not is_bookable(date, self.config, self.config.local_today(now)):
            return []

        window = hours.window_for(date, self.config.timezone)
        min_bookable = now.add(hours=self.config.min_notice_hours)
        busy = conflicting(window, existing_appointments)

        slots: List[TimeSlot] = []
        cursor = window.start

        # A slot must end by closing time
        while cursor.add(minutes=service.duration_minutes) <= window.end:
            slot_range = TimeRange(
                start=cursor,
                end=cursor.add(minutes=service.duration_minutes)
            )

            too_soon = cursor < min_bookable
            conflicted = any(overlaps(slot_range, appt) for appt in busy)

            slots.append(
                TimeSlot(
                    start=cursor,
                    duration_minutes=service.duration_minutes,
                    available=not too_soon and not conflicted
                )
            )

            cursor = cursor.add(minutes=service.duration_minutes + self.config.buffer_minutes)

        logger.debug(
            "Generated %d slots for %s on %s (%d available)",
            len(slots),
            service.name,
            date,
            sum(1 for slot in slots if slot.available)
        )
        return slots

    def first_available(
        self,
        date: Date,
        service: Service,
        existing_appointments: Iterable[ExistingAppointment],
        now: DateTime
    ) -> Optional[TimeSlot]:
        """Return the earliest available slot on a date, or None."""
        for slot in self.generate_slots(date, service, existing_appointments, now):
            if slot.available:
                return slot
        return None


def generate_slots(
    date: Date,
    service: Service,
    config: ScheduleConfig,
    existing_appointments: Iterable[ExistingAppointment],
    now: DateTime
) -> List[TimeSlot]:
    """Functional form of ``SlotGenerator.generate_slots``."""
    return SlotGenerator(config).generate_slots(date, service, existing_appointments, now)
