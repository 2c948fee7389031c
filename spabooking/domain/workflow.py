"""
Booking workflow state machine.

Each state is its own frozen dataclass holding exactly the selections that
are legal at that step, so a state such as "submitting without a slot" cannot
be constructed. ``BookingWorkflow`` owns the current state and performs the
transitions:

    SelectingService -> SelectingDateTime -> EnteringContactInfo
        -> Submitting -> Confirmed | Failed
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Optional, Sequence, Union

from pendulum import Date, DateTime

from .exceptions import (
    BookingError,
    BookingValidationError,
    InvalidTransitionError,
    SlotNoLongerAvailable,
)
from .models import (
    BookingConfirmation,
    BookingRequest,
    ContactInfo,
    ScheduleConfig,
    Service,
    TimeSlot,
)

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class BookingStep(str, Enum):
    """Discrete workflow steps."""
    SELECTING_SERVICE = "selecting_service"
    SELECTING_DATE_TIME = "selecting_date_time"
    ENTERING_CONTACT_INFO = "entering_contact_info"
    SUBMITTING = "submitting"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass(frozen=True)
class SelectingService:
    step: ClassVar[BookingStep] = BookingStep.SELECTING_SERVICE
    service: Optional[Service] = None
    date: Optional[Date] = None
    contact: Optional[ContactInfo] = None


@dataclass(frozen=True)
class SelectingDateTime:
    step: ClassVar[BookingStep] = BookingStep.SELECTING_DATE_TIME
    service: Service
    date: Optional[Date] = None
    slot: Optional[TimeSlot] = None
    contact: Optional[ContactInfo] = None


@dataclass(frozen=True)
class EnteringContactInfo:
    step: ClassVar[BookingStep] = BookingStep.ENTERING_CONTACT_INFO
    service: Service
    date: Date
    slot: TimeSlot
    contact: Optional[ContactInfo] = None


@dataclass(frozen=True)
class Submitting:
    step: ClassVar[BookingStep] = BookingStep.SUBMITTING
    service: Service
    date: Date
    slot: TimeSlot
    contact: ContactInfo
    request: BookingRequest


@dataclass(frozen=True)
class Confirmed:
    step: ClassVar[BookingStep] = BookingStep.CONFIRMED
    service: Service
    slot: TimeSlot
    confirmation: BookingConfirmation


@dataclass(frozen=True)
class Failed:
    step: ClassVar[BookingStep] = BookingStep.FAILED
    service: Service
    date: Date
    slot: TimeSlot
    contact: ContactInfo
    reason: BookingError


BookingState = Union[
    SelectingService,
    SelectingDateTime,
    EnteringContactInfo,
    Submitting,
    Confirmed,
    Failed,
]

TERMINAL_STEPS = frozenset({BookingStep.CONFIRMED, BookingStep.FAILED})


class BookingWorkflow:
    """
    Drives one client's booking session for one provider.

    The workflow never fetches data or talks to collaborators itself. Callers
    pass in freshly generated slots when a time is chosen, and report the
    commit outcome through ``confirm`` or ``fail``.
    """

    def __init__(self, config: ScheduleConfig, catalog: Sequence[Service]):
        self.config = config
        self.catalog = list(catalog)
        self.state: BookingState = SelectingService()

    @property
    def step(self) -> BookingStep:
        return self.state.step

    @property
    def is_terminal(self) -> bool:
        return self.step in TERMINAL_STEPS

    def find_service(self, name: str) -> Optional[Service]:
        """Find a catalog service by name (case-insensitive)."""
        for service in self.catalog:
            if service.name.lower() == name.lower():
                return service
        return None

    def select_service(self, service: Service) -> SelectingDateTime:
        """Choose a service. Any previously chosen slot is discarded."""
        state = self._expect(SelectingService)
        if service not in self.catalog:
            raise BookingValidationError(
                f"Service '{service.name}' is not offered by {self.config.business_name or 'this provider'}",
                field="service"
            )
        return self._move(
            SelectingDateTime(service=service, date=state.date, contact=state.contact)
        )

    def select_date(self, date: Date) -> SelectingDateTime:
        """Choose a calendar date. Clears the chosen slot."""
        state = self._expect(SelectingDateTime)
        return self._move(
            SelectingDateTime(service=state.service, date=date, contact=state.contact)
        )

    def select_slot(self, start: DateTime, current_slots: Sequence[TimeSlot]) -> EnteringContactInfo:
        """
        Choose a start time from freshly generated slots.

        Args:
            start: The start instant the client picked
            current_slots: Output of generate_slots for the selected date and
                service, computed after the latest appointment fetch. Slots
                of any other date or duration never match.

        Raises:
            SlotNoLongerAvailable: If the start is not an available slot
        """
        state = self._expect(SelectingDateTime)
        if state.date is None:
            raise InvalidTransitionError("A date must be selected before choosing a time")

        for slot in current_slots:
            if (
                slot.start == start
                and slot.available
                and slot.duration_minutes == state.service.duration_minutes
                and slot.start.in_timezone(self.config.timezone).date() == state.date
            ):
                return self._move(
                    EnteringContactInfo(
                        service=state.service,
                        date=state.date,
                        slot=slot,
                        contact=state.contact
                    )
                )

        raise SlotNoLongerAvailable(
            f"The {start.in_timezone(self.config.timezone).format('h:mm A')} slot is no longer available. "
            "Please choose another time."
        )

    def submit_contact(self, contact: ContactInfo) -> BookingRequest:
        """
        Validate contact details and move to Submitting.

        Returns:
            The BookingRequest to hand to the commit service

        Raises:
            BookingValidationError: If a required field is missing or malformed;
                the workflow stays in EnteringContactInfo
        """
        state = self._expect(EnteringContactInfo)
        contact = self._validate_contact(contact)

        request = BookingRequest(
            provider_id=self.config.provider_id,
            client_name=contact.name,
            client_email=contact.email,
            client_phone=contact.phone,
            service=state.service.name,
            requested_start=state.slot.start,
            duration_minutes=state.service.duration_minutes,
            notes=contact.notes,
        )
        self._move(
            Submitting(
                service=state.service,
                date=state.date,
                slot=state.slot,
                contact=contact,
                request=request
            )
        )
        return request

    def confirm(self, confirmation: BookingConfirmation) -> Confirmed:
        state = self._expect(Submitting)
        return self._move(
            Confirmed(service=state.service, slot=state.slot, confirmation=confirmation)
        )

    def fail(self, reason: BookingError) -> Failed:
        state = self._expect(Submitting)
        return self._move(
            Failed(
                service=state.service,
                date=state.date,
                slot=state.slot,
                contact=state.contact,
                reason=reason
            )
        )

    def back(self) -> BookingState:
        """Return to the previous step, keeping earlier selections."""
        state = self.state
        if isinstance(state, SelectingDateTime):
            return self._move(
                SelectingService(service=state.service, date=state.date, contact=state.contact)
            )
        if isinstance(state, EnteringContactInfo):
            return self._move(
                SelectingDateTime(
                    service=state.service,
                    date=state.date,
                    slot=state.slot,
                    contact=state.contact
                )
            )
        if isinstance(state, Submitting):
            return self._move(
                EnteringContactInfo(
                    service=state.service,
                    date=state.date,
                    slot=state.slot,
                    contact=state.contact
                )
            )
        raise InvalidTransitionError(f"Cannot go back from {state.step.value}")

    def choose_another_time(self) -> SelectingDateTime:
        """Recover from a failed submission by picking a new slot."""
        state = self._expect(Failed)
        return self._move(
            SelectingDateTime(service=state.service, date=state.date, contact=state.contact)
        )

    def restart(self) -> SelectingService:
        return self._move(SelectingService())

    def _validate_contact(self, contact: ContactInfo) -> ContactInfo:
        name = (contact.name or "").strip()
        email = (contact.email or "").strip() or None
        phone = (contact.phone or "").strip() or None

        if not name:
            raise BookingValidationError("Please enter your name", field="name")
        if self.config.require_email and not email:
            raise BookingValidationError("An email address is required", field="email")
        if email and not EMAIL_PATTERN.match(email):
            raise BookingValidationError(f"'{email}' is not a valid email address", field="email")
        if self.config.require_phone and not phone:
            raise BookingValidationError("A phone number is required", field="phone")

        return ContactInfo(name=name, email=email, phone=phone, notes=(contact.notes or "").strip())

    def _expect(self, state_type):
        if not isinstance(self.state, state_type):
            raise InvalidTransitionError(
                f"Operation requires {state_type.step.value}, current step is {self.step.value}"
            )
        return self.state

    def _move(self, new_state):
        logger.debug("Booking workflow: %s -> %s", self.step.value, new_state.step.value)
        self.state = new_state
        return new_state
