"""
Date-level availability rules.

A date is either offerable as a whole or not at all; partial-day
restrictions (notice window, existing appointments) are handled by the
slot generator.
"""

from typing import List

from pendulum import Date

from .models import ScheduleConfig


def is_bookable(date: Date, config: ScheduleConfig, today: Date) -> bool:
    """
    Decide whether a calendar date can be offered for booking.

    Rules, in order:
    1. No past dates.
    2. No dates beyond the advance booking window.
    3. The weekday must have business hours enabled.
    4. The date must not be blocked.
    """
    if date < today:
        return False

    if date > today.add(days=config.advance_booking_days):
        return False

    if config.hours_for(date) is None:
        return False

    return date not in config.blocked_dates


def bookable_dates(config: ScheduleConfig, today: Date) -> List[Date]:
    """List every bookable date from today through the end of the advance window."""
    return [
        day for day in (today.add(days=offset) for offset in range(config.advance_booking_days + 1))
        if is_bookable(day, config, today)
    ]
