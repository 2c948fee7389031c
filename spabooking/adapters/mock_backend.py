"""
In-memory booking backend for demos and tests.
"""

import asyncio
import json
import logging
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

from pendulum import DateTime

from ..domain.conflicts import conflicting
from ..domain.exceptions import BookingValidationError, SlotConflictError
from ..domain.models import (
    BookingConfirmation,
    BookingRequest,
    ConfirmationNotice,
    ExistingAppointment,
    ScheduleConfig,
    Service,
)
from .records import AppointmentRecord, BookingSettingsRecord, ServiceRecord

logger = logging.getLogger(__name__)

DEFAULT_DATA_FILE = Path(__file__).parent / "mock_booking_data.json"


class InMemoryBookingStore:
    """
    Mock backend that keeps settings, services and appointments in memory.

    Implements both the repository and the commit port. Commits are
    serialised by a lock and re-check the calendar before inserting, so two
    sessions racing for the same slot get one confirmation and one
    SlotConflictError.
    """

    def __init__(
        self,
        settings: List[BookingSettingsRecord],
        services: Dict[str, List[ServiceRecord]],
        appointments: Dict[str, List[ExistingAppointment]],
        default_timezone: str = "America/New_York"
    ):
        self._settings = {record.booking_url_slug: record for record in settings}
        self._services = services
        self._appointments = appointments
        self._default_timezone = default_timezone
        self._bookings: List[BookingConfirmation] = []
        self._taken: Set[Tuple[str, DateTime]] = set()
        self._lock = asyncio.Lock()

    @classmethod
    def from_json(
        cls,
        data_file: Optional[Path] = None,
        default_timezone: str = "America/New_York"
    ) -> "InMemoryBookingStore":
        """
        Load demo data from a JSON file.

        Expected layout:
        {
            "booking_settings": [{...}],
            "services": {"<user_id>": [{...}]},
            "appointments": {"<user_id>": [{"start_time": "...", "duration": 30}]}
        }
        """
        path = data_file or DEFAULT_DATA_FILE
        with open(path, "r", encoding="utf-8") as f:
            data: Dict[str, Any] = json.load(f)

        return cls(
            settings=[BookingSettingsRecord(**entry) for entry in data.get("booking_settings", [])],
            services={
                user_id: [ServiceRecord(**entry) for entry in entries]
                for user_id, entries in data.get("services", {}).items()
            },
            appointments={
                user_id: [AppointmentRecord(**entry).to_domain() for entry in entries]
                for user_id, entries in data.get("appointments", {}).items()
            },
            default_timezone=default_timezone,
        )

    @property
    def bookings(self) -> List[BookingConfirmation]:
        return list(self._bookings)

    def add_appointment(self, provider_id: str, appointment: ExistingAppointment) -> None:
        """Put an appointment on a provider's calendar directly."""
        self._appointments.setdefault(provider_id, []).append(appointment)

    async def get_schedule_config(self, slug: str) -> Optional[ScheduleConfig]:
        record = self._settings.get(slug)
        if record is None or not record.enabled:
            return None

        try:
            return record.to_domain(self._default_timezone)
        except ValueError as exc:
            logger.error("Invalid booking settings for %s: %s", slug, exc)
            return None

    async def list_services(self, provider_id: str) -> List[Service]:
        records = sorted(
            (record for record in self._services.get(provider_id, []) if record.bookable),
            key=lambda record: record.display_order
        )
        return [record.to_domain() for record in records]

    async def list_appointments(
        self,
        provider_id: str,
        start: DateTime,
        end: DateTime
    ) -> List[ExistingAppointment]:
        return [
            appt for appt in self._calendar(provider_id)
            if appt.is_active() and start <= appt.start < end
        ]

    async def commit(self, request: BookingRequest) -> BookingConfirmation:
        if not request.client_name.strip():
            raise BookingValidationError("client_name is required", field="client_name")

        async with self._lock:
            key = (request.provider_id, request.requested_start)
            clashes = conflicting(request.time_range, self._calendar(request.provider_id))
            if key in self._taken or clashes:
                raise SlotConflictError(
                    "This time slot was just booked by someone else. Please choose another time."
                )

            # Yield while holding the lock, as a remote insert would
            await asyncio.sleep(0)

            confirmation = BookingConfirmation(booking_id=str(uuid.uuid4()), request=request)
            self._taken.add(key)
            self._bookings.append(confirmation)

        logger.debug("Stored booking %s", confirmation.booking_id)
        return confirmation

    def _calendar(self, provider_id: str) -> List[ExistingAppointment]:
        """Existing appointments plus bookings accepted by this store."""
        booked = [
            ExistingAppointment(
                start=confirmation.request.requested_start,
                duration_minutes=confirmation.request.duration_minutes,
                status=confirmation.status
            )
            for confirmation in self._bookings
            if confirmation.request.provider_id == provider_id
        ]
        return self._appointments.get(provider_id, []) + booked


class RecordingNotifier:
    """
    Mock notifier that records notices instead of sending them.

    Set ``fail_with`` to simulate a delivery failure.
    """

    def __init__(self, fail_with: Optional[Exception] = None):
        self.sent: List[ConfirmationNotice] = []
        self.fail_with = fail_with

    async def send_confirmation(self, notice: ConfirmationNotice) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(notice)
