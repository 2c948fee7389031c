"""
Shared fixtures: a provider open Monday mornings, and its service catalog.
"""

from datetime import time

import pendulum
import pytest

from spabooking.domain.models import BusinessHours, ScheduleConfig, Service

TZ = "America/New_York"


@pytest.fixture
def monday():
    return pendulum.date(2024, 11, 25)


@pytest.fixture
def now():
    """Monday 08:00, before opening."""
    return pendulum.datetime(2024, 11, 25, 8, 0, tz=TZ)


@pytest.fixture
def schedule_config():
    return ScheduleConfig(
        provider_id="prov-7f3a2c10",
        business_name="Glow Aesthetics Med Spa",
        timezone=TZ,
        buffer_minutes=10,
        advance_booking_days=30,
        min_notice_hours=0,
        blocked_dates=frozenset({pendulum.date(2024, 11, 26)}),
        business_hours={
            "monday": BusinessHours(enabled=True, start=time(9, 0), end=time(12, 0)),
            "tuesday": BusinessHours(enabled=True, start=time(9, 0), end=time(17, 0)),
            "wednesday": BusinessHours(enabled=True, start=time(9, 0), end=time(17, 0)),
            "sunday": BusinessHours(enabled=False, start=time(9, 0), end=time(17, 0)),
        },
        require_email=True,
        require_phone=False,
        confirmation_message="Thank you for booking! We look forward to seeing you.",
    )


@pytest.fixture
def consultation():
    return Service(name="Botox Consultation", duration_minutes=30, price=0)


@pytest.fixture
def filler():
    return Service(name="Dermal Filler", duration_minutes=60, price=650)
