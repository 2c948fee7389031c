"""
Application service driving public bookings.

The service fetches schedule data through a repository port, delegates slot
generation to the domain-level ``SlotGenerator``, moves the
``BookingWorkflow`` through its steps, and hands validated requests to the
commit port. The commit port is the final arbiter for conflicts; the slots
computed here are advisory only.

Confirmation notices are fired after a successful commit as background tasks.
A failing notifier is logged and never turns a confirmed booking into a
failure.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional, Protocol, Set

import pendulum
from pendulum import Date, DateTime

from ..domain.exceptions import BookingError, ConfigUnavailableError
from ..domain.models import (
    BookingConfirmation,
    BookingRequest,
    ConfirmationNotice,
    ContactInfo,
    ExistingAppointment,
    ScheduleConfig,
    Service,
    TimeSlot,
)
from ..domain.slot_generator import SlotGenerator
from ..domain.workflow import BookingState, BookingWorkflow, Confirmed, SelectingDateTime

logger = logging.getLogger(__name__)


class ScheduleRepositoryProtocol(Protocol):
    """Read access to a provider's booking data."""

    async def get_schedule_config(self, slug: str) -> Optional[ScheduleConfig]:
        """Return the enabled booking settings for a page slug, or None."""

    async def list_services(self, provider_id: str) -> List[Service]:
        """Return active, online-bookable services in display order."""

    async def list_appointments(
        self,
        provider_id: str,
        start: DateTime,
        end: DateTime,
    ) -> List[ExistingAppointment]:
        """Return non-cancelled appointments starting within [start, end)."""


class BookingCommitProtocol(Protocol):
    """Authoritative persistence for booking requests."""

    async def commit(self, request: BookingRequest) -> BookingConfirmation:
        """
        Persist a request.

        Raises:
            SlotConflictError: The slot was taken since it was offered
            BookingValidationError: The request is malformed
            TransientError: Infrastructure failure
        """


class NotificationProtocol(Protocol):
    """Best-effort delivery of confirmation notices."""

    async def send_confirmation(self, notice: ConfirmationNotice) -> None:
        """Deliver a notice. May raise; failures are logged by the caller."""


class BookingService:
    """
    Orchestrates data fetching, slot generation and booking commits.

    Dependency inversion toward protocols makes it easy to plug in the HTTP
    backend or the in-memory store in tests.
    """

    def __init__(
        self,
        repository: ScheduleRepositoryProtocol,
        committer: BookingCommitProtocol,
        notifier: Optional[NotificationProtocol] = None,
        clock: Callable[[], DateTime] = pendulum.now,
    ) -> None:
        self._repository = repository
        self._committer = committer
        self._notifier = notifier
        self._clock = clock
        self._pending_notices: Set[asyncio.Task] = set()

    async def open_session(self, slug: str) -> BookingWorkflow:
        """
        Start a booking session for a provider's public page.

        Raises:
            ConfigUnavailableError: If the page is disabled or unknown
        """
        config = await self._repository.get_schedule_config(slug)
        if config is None:
            raise ConfigUnavailableError(
                f"Booking page '{slug}' is not active or does not exist."
            )

        services = await self._repository.list_services(config.provider_id)
        logger.info(
            "Opened booking session for %s (%d services)",
            config.business_name or slug,
            len(services)
        )
        return BookingWorkflow(config=config, catalog=services)

    async def slots_for(
        self,
        config: ScheduleConfig,
        service: Service,
        date: Date,
    ) -> List[TimeSlot]:
        """
        Fetch the day's appointments fresh and generate slots.

        Appointments are never cached across calls so every regeneration
        reflects the latest bookings.
        """
        day_start = pendulum.datetime(date.year, date.month, date.day, tz=config.timezone)
        day_end = day_start.add(days=1)

        appointments = await self._repository.list_appointments(
            config.provider_id,
            day_start,
            day_end,
        )
        return SlotGenerator(config).generate_slots(
            date=date,
            service=service,
            existing_appointments=appointments,
            now=self._clock(),
        )

    async def choose_time(self, workflow: BookingWorkflow, start: DateTime) -> BookingState:
        """
        Select a start time after regenerating the day's slots.

        Raises:
            SlotNoLongerAvailable: If the start is no longer offered
            InvalidTransitionError: If no service/date is selected
        """
        state = workflow.state
        if not isinstance(state, SelectingDateTime) or state.date is None:
            # Let the workflow report the illegal transition
            return workflow.select_slot(start, [])

        slots = await self.slots_for(workflow.config, state.service, state.date)
        return workflow.select_slot(start, slots)

    async def submit(self, workflow: BookingWorkflow, contact: ContactInfo) -> BookingState:
        """
        Validate contact details and commit the booking.

        Commit errors move the workflow to Failed with the error as reason
        instead of propagating. Contact validation errors propagate and leave
        the workflow in EnteringContactInfo.

        Returns:
            The resulting Confirmed or Failed state
        """
        request = workflow.submit_contact(contact)

        try:
            confirmation = await self._committer.commit(request)
        except BookingError as exc:
            logger.warning(
                "Booking for %s at %s failed: %s",
                request.client_name,
                request.requested_start.to_iso8601_string(),
                exc
            )
            return workflow.fail(exc)

        state = workflow.confirm(confirmation)
        logger.info(
            "Booking %s confirmed for %s at %s",
            confirmation.booking_id,
            request.client_name,
            request.requested_start.to_iso8601_string()
        )
        self._schedule_notice(state, workflow.config)
        return state

    async def drain_notifications(self) -> None:
        """Wait for all in-flight confirmation notices to finish."""
        if self._pending_notices:
            await asyncio.gather(*self._pending_notices, return_exceptions=True)

    def _schedule_notice(self, state: Confirmed, config: ScheduleConfig) -> None:
        if self._notifier is None:
            return

        notice = ConfirmationNotice.for_booking(state.confirmation, config)
        if notice is None:
            logger.debug("No email on booking %s, skipping confirmation", state.confirmation.booking_id)
            return

        task = asyncio.create_task(self._deliver(notice))
        self._pending_notices.add(task)
        task.add_done_callback(self._pending_notices.discard)

    async def _deliver(self, notice: ConfirmationNotice) -> None:
        try:
            await self._notifier.send_confirmation(notice)
        except Exception:
            logger.warning("Failed to send booking confirmation to %s", notice.recipient, exc_info=True)
        else:
            logger.info("Sent booking confirmation to %s", notice.recipient)
