"""
Pydantic schemas for records exchanged with the booking backend.

Field names follow the backend tables (``booking_settings``, ``services``,
``appointments``, ``public_bookings``). Each record converts into the
matching domain model.
"""

from datetime import time
from typing import Any, Dict, List, Optional

import pendulum
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..domain.models import (
    WEEKDAY_NAMES,
    BookingRequest,
    BusinessHours,
    ExistingAppointment,
    ScheduleConfig,
    Service,
)


def _parse_clock(value: str) -> time:
    """Parse an "HH:MM" string."""
    try:
        hour_str, minute_str = value.strip().split(":")
        return time(hour=int(hour_str), minute=int(minute_str))
    except (AttributeError, ValueError) as exc:
        raise ValueError(f"Expected time as HH:MM, got {value!r}") from exc


def _default_business_hours() -> Dict[str, "BusinessHoursRecord"]:
    weekdays = WEEKDAY_NAMES[:5]
    return {
        day: BusinessHoursRecord(enabled=day in weekdays, start="09:00", end="17:00")
        for day in WEEKDAY_NAMES
    }


class BusinessHoursRecord(BaseModel):
    """Opening hours of one weekday as stored by the backend."""
    enabled: bool = False
    start: str = "09:00"
    end: str = "17:00"

    @field_validator("start", "end")
    @classmethod
    def validate_clock(cls, value: str) -> str:
        """Ensure the value parses as HH:MM."""
        _parse_clock(value)
        return value

    def to_domain(self) -> BusinessHours:
        return BusinessHours(
            enabled=self.enabled,
            start=_parse_clock(self.start),
            end=_parse_clock(self.end)
        )


class BookingSettingsRecord(BaseModel):
    """A provider's public booking page settings."""
    model_config = ConfigDict(extra="ignore")

    user_id: str
    enabled: bool = False
    business_name: str = ""
    booking_url_slug: str = ""
    booking_buffer_minutes: int = Field(default=15, ge=0)
    advance_booking_days: int = Field(default=30, ge=0)
    min_notice_hours: int = Field(default=2, ge=0)
    business_hours: Dict[str, BusinessHoursRecord] = Field(default_factory=_default_business_hours)
    blocked_dates: List[str] = Field(default_factory=list)
    require_phone: bool = True
    require_email: bool = True
    confirmation_message: str = "Thank you for booking! We will send you a confirmation shortly."
    timezone: Optional[str] = None

    @field_validator("business_hours")
    @classmethod
    def validate_weekdays(cls, value: Dict[str, BusinessHoursRecord]) -> Dict[str, BusinessHoursRecord]:
        """Normalise weekday keys and reject unknown names."""
        normalized = {day.lower(): hours for day, hours in value.items()}
        unknown = sorted(set(normalized) - set(WEEKDAY_NAMES))
        if unknown:
            raise ValueError(f"Unknown weekday(s) in business_hours: {unknown}")
        return normalized

    @field_validator("blocked_dates")
    @classmethod
    def validate_blocked_dates(cls, value: List[str]) -> List[str]:
        """Ensure blocked dates are YYYY-MM-DD."""
        for entry in value:
            try:
                pendulum.from_format(entry, "YYYY-MM-DD")
            except ValueError as exc:
                raise ValueError(f"Blocked date must be YYYY-MM-DD, got {entry!r}") from exc
        return value

    def to_domain(self, default_timezone: str) -> ScheduleConfig:
        """
        Build the immutable schedule snapshot.

        Args:
            default_timezone: Zone used when the record carries none

        Raises:
            ValueError: If enabled hours do not open before they close
        """
        return ScheduleConfig(
            provider_id=self.user_id,
            business_name=self.business_name,
            timezone=self.timezone or default_timezone,
            buffer_minutes=self.booking_buffer_minutes,
            advance_booking_days=self.advance_booking_days,
            min_notice_hours=self.min_notice_hours,
            blocked_dates=frozenset(
                pendulum.from_format(entry, "YYYY-MM-DD").date() for entry in self.blocked_dates
            ),
            business_hours={day: hours.to_domain() for day, hours in self.business_hours.items()},
            require_email=self.require_email,
            require_phone=self.require_phone,
            confirmation_message=self.confirmation_message,
        )


class ServiceRecord(BaseModel):
    """A catalog entry from the services table."""
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    name: str
    description: Optional[str] = ""
    duration_minutes: int = Field(gt=0)
    price: float = Field(default=0.0, ge=0)
    active: bool = True
    available_for_online_booking: bool = True
    display_order: int = 0

    @property
    def bookable(self) -> bool:
        return self.active and self.available_for_online_booking

    def to_domain(self) -> Service:
        return Service(
            id=self.id,
            name=self.name,
            description=self.description or "",
            duration_minutes=self.duration_minutes,
            price=self.price,
        )


class AppointmentRecord(BaseModel):
    """An existing appointment (start_time, duration, status)."""
    model_config = ConfigDict(extra="ignore")

    start_time: str
    duration: int = Field(gt=0)
    status: str = "scheduled"

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, value: str) -> str:
        """Ensure the start time is an ISO 8601 instant."""
        try:
            pendulum.parse(value)
        except ValueError as exc:
            raise ValueError(f"Invalid start_time: {value!r}") from exc
        return value

    def to_domain(self) -> ExistingAppointment:
        return ExistingAppointment(
            start=pendulum.parse(self.start_time),
            duration_minutes=self.duration,
            status=self.status
        )


class PublicBookingRecord(BaseModel):
    """A booking request awaiting the provider's approval."""
    model_config = ConfigDict(extra="ignore")

    requested_time: str
    duration_minutes: int = Field(gt=0)
    status: str = "pending"

    @field_validator("requested_time")
    @classmethod
    def validate_requested_time(cls, value: str) -> str:
        """Ensure the requested time is an ISO 8601 instant."""
        try:
            pendulum.parse(value)
        except ValueError as exc:
            raise ValueError(f"Invalid requested_time: {value!r}") from exc
        return value

    def to_domain(self) -> ExistingAppointment:
        """A pending request holds its slot like a scheduled appointment."""
        return ExistingAppointment(
            start=pendulum.parse(self.requested_time),
            duration_minutes=self.duration_minutes,
            status=self.status
        )


def booking_request_payload(request: BookingRequest) -> Dict[str, Any]:
    """Serialise a booking request into a public_bookings row."""
    return {
        "practitioner_user_id": request.provider_id,
        "client_name": request.client_name,
        "client_email": request.client_email or "",
        "client_phone": request.client_phone or "",
        "service": request.service,
        "requested_time": request.requested_start.in_timezone("UTC").to_iso8601_string(),
        "duration_minutes": request.duration_minutes,
        "status": request.status,
        "notes": request.notes,
    }
