"""
Domain models for schedules, services, appointments and booking requests.
"""

from dataclasses import dataclass, field
from datetime import time
from typing import FrozenSet, Mapping, Optional

import pendulum
from pendulum import Date, DateTime

from .conflicts import overlaps

WEEKDAY_NAMES = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

CANCELLED_STATUS = "cancelled"


def weekday_name(date: Date) -> str:
    """Return the lowercase English weekday name, independent of locale."""
    return WEEKDAY_NAMES[date.weekday()]


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable half-open time range [start, end).

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another."""
        return overlaps(self, other)

    def intersect(self, other: "TimeRange") -> "TimeRange | None":
        """
        Calculate the intersection of two time ranges.
        Returns None if there is no overlap.
        """
        if not self.overlaps(other):
            return None

        return TimeRange(start=max(self.start, other.start), end=min(self.end, other.end))

    def __str__(self) -> str:
        return f"{self.start.format('YYYY-MM-DD HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class BusinessHours:
    """Opening hours for one weekday."""
    enabled: bool
    start: time
    end: time

    def __post_init__(self):
        if self.enabled and self.start >= self.end:
            raise ValueError(
                f"Business hours start {self.start} must be before end {self.end}"
            )

    def window_for(self, date: Date, timezone: str) -> TimeRange:
        """Anchor the opening hours to a calendar date in the given timezone."""
        start = pendulum.datetime(
            date.year, date.month, date.day,
            self.start.hour, self.start.minute,
            tz=timezone
        )
        end = pendulum.datetime(
            date.year, date.month, date.day,
            self.end.hour, self.end.minute,
            tz=timezone
        )
        return TimeRange(start=start, end=end)


@dataclass(frozen=True)
class ScheduleConfig:
    """
    Immutable snapshot of a provider's booking rules.

    All business-hours and blocked-date comparisons happen in ``timezone``,
    the provider's own zone, never the visiting client's.
    """
    provider_id: str
    business_hours: Mapping[str, BusinessHours]
    timezone: str = "America/New_York"
    business_name: str = ""
    buffer_minutes: int = 0
    advance_booking_days: int = 30
    min_notice_hours: int = 0
    blocked_dates: FrozenSet[Date] = field(default_factory=frozenset)
    require_email: bool = False
    require_phone: bool = False
    confirmation_message: str = ""

    def __post_init__(self):
        for name in ("buffer_minutes", "advance_booking_days", "min_notice_hours"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")

    def hours_for(self, date: Date) -> Optional[BusinessHours]:
        """Return the opening hours for a date's weekday, or None if closed."""
        hours = self.business_hours.get(weekday_name(date))
        if hours is None or not hours.enabled:
            return None
        return hours

    def local_today(self, now: DateTime) -> Date:
        """Return the provider-local calendar date for an instant."""
        return now.in_timezone(self.timezone).date()


@dataclass(frozen=True)
class Service:
    """A bookable service from the provider's catalog."""
    name: str
    duration_minutes: int
    price: float = 0.0
    description: str = ""
    id: Optional[str] = None

    def __post_init__(self):
        if self.duration_minutes <= 0:
            raise ValueError(f"Service duration must be positive, got {self.duration_minutes}")
        if self.price < 0:
            raise ValueError(f"Service price must not be negative, got {self.price}")


@dataclass(frozen=True)
class ExistingAppointment:
    """An appointment already on the provider's calendar."""
    start: DateTime
    duration_minutes: int
    status: str = "scheduled"

    def __post_init__(self):
        if self.duration_minutes <= 0:
            raise ValueError(
                f"Appointment duration must be positive, got {self.duration_minutes}"
            )

    @property
    def end(self) -> DateTime:
        return self.start.add(minutes=self.duration_minutes)

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start, end=self.end)

    def is_active(self) -> bool:
        """Cancelled appointments never block a slot."""
        return self.status.lower() != CANCELLED_STATUS


@dataclass(frozen=True)
class TimeSlot:
    """
    A candidate appointment start offered to a client.

    Derived and never persisted; recomputed whenever date, service or
    appointments change.
    """
    start: DateTime
    duration_minutes: int
    available: bool

    @property
    def end(self) -> DateTime:
        return self.start.add(minutes=self.duration_minutes)

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start, end=self.end)

    def format_display(self) -> str:
        """
        Format the slot for display.
        Format: Weekday, Mon DD, YYYY | h:mm A - h:mm A
        """
        date_str = self.start.format("dddd, MMM DD, YYYY", locale="en")
        time_str = f"{self.start.format('h:mm A', locale='en')} - {self.end.format('h:mm A', locale='en')}"
        return f"{date_str} | {time_str}"


@dataclass(frozen=True)
class ContactInfo:
    """Contact details entered by the client."""
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    notes: str = ""


@dataclass(frozen=True)
class BookingRequest:
    """A validated request handed to the commit service."""
    provider_id: str
    client_name: str
    service: str
    requested_start: DateTime
    duration_minutes: int
    client_email: Optional[str] = None
    client_phone: Optional[str] = None
    notes: str = ""
    status: str = "pending"

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(
            start=self.requested_start,
            end=self.requested_start.add(minutes=self.duration_minutes)
        )


@dataclass(frozen=True)
class BookingConfirmation:
    """The record created by the commit service for an accepted request."""
    booking_id: str
    request: BookingRequest
    status: str = "pending"


@dataclass(frozen=True)
class ConfirmationNotice:
    """Payload for the best-effort confirmation message."""
    recipient: str
    business_name: str
    client_name: str
    service: str
    date: str
    time: str
    confirmation_message: str

    @classmethod
    def for_booking(
        cls,
        confirmation: BookingConfirmation,
        config: ScheduleConfig
    ) -> "ConfirmationNotice | None":
        """
        Build a notice for a confirmed booking.
        Returns None when the client left no email address.
        """
        request = confirmation.request
        if not request.client_email:
            return None

        local_start = request.requested_start.in_timezone(config.timezone)
        return cls(
            recipient=request.client_email,
            business_name=config.business_name,
            client_name=request.client_name,
            service=request.service,
            date=local_start.format("MMMM DD, YYYY", locale="en"),
            time=local_start.format("h:mm A", locale="en"),
            confirmation_message=config.confirmation_message,
        )
