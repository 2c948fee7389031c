"""
Tests for the BookingService orchestration layer against the in-memory backend.
"""

import asyncio
import logging

import pendulum
import pytest

from spabooking.adapters.mock_backend import InMemoryBookingStore, RecordingNotifier
from spabooking.adapters.records import BookingSettingsRecord, ServiceRecord
from spabooking.domain.exceptions import (
    ConfigUnavailableError,
    NotificationError,
    SlotConflictError,
    SlotNoLongerAvailable,
)
from spabooking.domain.models import BookingRequest, ContactInfo, ExistingAppointment
from spabooking.domain.workflow import BookingStep, Confirmed, Failed, SelectingDateTime
from spabooking.services.booking_service import BookingService

TZ = "America/New_York"
PROVIDER = "prov-7f3a2c10"
MONDAY = pendulum.date(2024, 11, 25)
JANE = ContactInfo(name="Jane Doe", email="jane@example.com", phone="555-0100")
SAM = ContactInfo(name="Sam Lee", email="sam@example.com", phone="555-0199")


def _at(clock: str):
    return pendulum.parse(f"2024-11-25 {clock}", tz=TZ)


def _build_store(require_email: bool = True) -> InMemoryBookingStore:
    settings = [
        BookingSettingsRecord(
            user_id=PROVIDER,
            enabled=True,
            business_name="Glow Aesthetics Med Spa",
            booking_url_slug="glow-aesthetics",
            booking_buffer_minutes=10,
            advance_booking_days=30,
            min_notice_hours=0,
            business_hours={"monday": {"enabled": True, "start": "09:00", "end": "12:00"}},
            require_email=require_email,
            require_phone=False,
            confirmation_message="See you soon!",
            timezone=TZ,
        ),
        BookingSettingsRecord(user_id="prov-19b4e8d2", enabled=False, booking_url_slug="renew-skin"),
    ]
    services = {
        PROVIDER: [
            ServiceRecord(name="Dermal Filler", duration_minutes=60, price=650, display_order=2),
            ServiceRecord(name="Botox Consultation", duration_minutes=30, price=0, display_order=1),
            ServiceRecord(name="Laser Hair Removal", duration_minutes=30, available_for_online_booking=False),
            ServiceRecord(name="Chemical Peel", duration_minutes=45, active=False),
        ]
    }
    return InMemoryBookingStore(settings=settings, services=services, appointments={})


def _build_service(store, notifier=None) -> BookingService:
    return BookingService(
        repository=store,
        committer=store,
        notifier=notifier,
        clock=lambda: pendulum.datetime(2024, 11, 25, 8, 0, tz=TZ),
    )


async def _open_at_contact_step(service, clock="09:40"):
    workflow = await service.open_session("glow-aesthetics")
    workflow.select_service(workflow.find_service("Botox Consultation"))
    workflow.select_date(MONDAY)
    await service.choose_time(workflow, _at(clock))
    return workflow


class TestOpenSession:
    """Tests for starting a booking session."""

    def test_loads_config_and_bookable_services_in_order(self):
        service = _build_service(_build_store())

        workflow = asyncio.run(service.open_session("glow-aesthetics"))

        assert workflow.config.provider_id == PROVIDER
        assert workflow.config.timezone == TZ
        assert [s.name for s in workflow.catalog] == ["Botox Consultation", "Dermal Filler"]
        assert workflow.step == BookingStep.SELECTING_SERVICE

    @pytest.mark.parametrize("slug", ["renew-skin", "no-such-practice"])
    def test_disabled_or_unknown_page_is_unavailable(self, slug):
        service = _build_service(_build_store())

        with pytest.raises(ConfigUnavailableError, match="not active or does not exist"):
            asyncio.run(service.open_session(slug))


class TestBooking:
    """End-to-end booking through the service."""

    def test_booking_confirms_and_blocks_slot(self):
        store = _build_store()
        notifier = RecordingNotifier()
        service = _build_service(store, notifier)

        async def scenario():
            workflow = await _open_at_contact_step(service)
            state = await service.submit(workflow, JANE)
            await service.drain_notifications()
            slots = await service.slots_for(workflow.config, workflow.find_service("Botox Consultation"), MONDAY)
            return state, slots

        state, slots = asyncio.run(scenario())

        assert isinstance(state, Confirmed)
        assert state.confirmation.request.requested_start == _at("09:40")
        assert len(store.bookings) == 1

        availability = {slot.start.format("HH:mm"): slot.available for slot in slots}
        assert availability == {"09:00": True, "09:40": False, "10:20": True, "11:00": True}

    def test_booking_blocks_overlapping_slots_of_longer_service(self):
        store = _build_store()
        service = _build_service(store)

        async def scenario():
            workflow = await _open_at_contact_step(service, clock="10:20")
            await service.submit(workflow, JANE)
            filler = workflow.find_service("Dermal Filler")
            return await service.slots_for(workflow.config, filler, MONDAY)

        slots = asyncio.run(scenario())

        # 60 minute grid with 10 minute buffer: 09:00, 10:10, and 10:10-11:10 hits 10:20-10:50
        availability = {slot.start.format("HH:mm"): slot.available for slot in slots}
        assert availability == {"09:00": True, "10:10": False}

    def test_confirmation_notice_is_sent(self):
        notifier = RecordingNotifier()
        service = _build_service(_build_store(), notifier)

        async def scenario():
            workflow = await _open_at_contact_step(service)
            await service.submit(workflow, JANE)
            await service.drain_notifications()

        asyncio.run(scenario())

        assert len(notifier.sent) == 1
        notice = notifier.sent[0]
        assert notice.recipient == "jane@example.com"
        assert notice.business_name == "Glow Aesthetics Med Spa"
        assert notice.client_name == "Jane Doe"
        assert notice.service == "Botox Consultation"
        assert notice.date == "November 25, 2024"
        assert notice.time == "9:40 AM"
        assert notice.confirmation_message == "See you soon!"

    def test_no_notice_without_email(self):
        notifier = RecordingNotifier()
        service = _build_service(_build_store(require_email=False), notifier)

        async def scenario():
            workflow = await _open_at_contact_step(service)
            state = await service.submit(workflow, ContactInfo(name="Jane Doe", phone="555-0100"))
            await service.drain_notifications()
            return state

        state = asyncio.run(scenario())

        assert isinstance(state, Confirmed)
        assert notifier.sent == []

    def test_notification_failure_does_not_fail_booking(self, caplog):
        notifier = RecordingNotifier(fail_with=NotificationError("mail service down"))
        store = _build_store()
        service = _build_service(store, notifier)

        async def scenario():
            workflow = await _open_at_contact_step(service)
            state = await service.submit(workflow, JANE)
            await service.drain_notifications()
            return workflow, state

        with caplog.at_level(logging.WARNING):
            workflow, state = asyncio.run(scenario())

        assert isinstance(state, Confirmed)
        assert workflow.step == BookingStep.CONFIRMED
        assert len(store.bookings) == 1
        assert "Failed to send booking confirmation to jane@example.com" in caplog.text


class TestConflicts:
    """Tests for commit-time conflict arbitration."""

    def test_slot_taken_before_selection_is_rejected(self):
        store = _build_store()
        service = _build_service(store)

        async def scenario():
            workflow = await service.open_session("glow-aesthetics")
            workflow.select_service(workflow.find_service("Botox Consultation"))
            workflow.select_date(MONDAY)
            store.add_appointment(PROVIDER, ExistingAppointment(start=_at("09:45"), duration_minutes=15))
            with pytest.raises(SlotNoLongerAvailable):
                await service.choose_time(workflow, _at("09:40"))
            return workflow

        workflow = asyncio.run(scenario())

        assert isinstance(workflow.state, SelectingDateTime)

    def test_concurrent_sessions_get_one_confirmation(self):
        """Two clients both see 09:40 free and submit at the same time."""
        store = _build_store()
        service = _build_service(store)

        async def scenario():
            first = await _open_at_contact_step(service)
            second = await _open_at_contact_step(service)
            return await asyncio.gather(
                service.submit(first, JANE),
                service.submit(second, SAM),
            )

        states = asyncio.run(scenario())

        confirmed = [state for state in states if isinstance(state, Confirmed)]
        failed = [state for state in states if isinstance(state, Failed)]
        assert len(confirmed) == 1
        assert len(failed) == 1
        assert isinstance(failed[0].reason, SlotConflictError)
        assert len(store.bookings) == 1

    def test_failed_session_can_pick_another_time(self):
        store = _build_store()
        service = _build_service(store)

        async def scenario():
            first = await _open_at_contact_step(service)
            second = await _open_at_contact_step(service)
            await service.submit(first, JANE)
            failed = await service.submit(second, SAM)

            second.choose_another_time()
            await service.choose_time(second, _at("10:20"))
            retried = await service.submit(second, SAM)
            return failed, retried

        failed, retried = asyncio.run(scenario())

        assert isinstance(failed, Failed)
        assert "just booked" in str(failed.reason)
        assert isinstance(retried, Confirmed)
        assert len(store.bookings) == 2

    def test_store_rejects_overlapping_commit_with_different_start(self):
        store = _build_store()

        def request(clock):
            return BookingRequest(
                provider_id=PROVIDER,
                client_name="Jane Doe",
                service="Botox Consultation",
                requested_start=_at(clock),
                duration_minutes=30,
            )

        async def scenario():
            await store.commit(request("09:40"))
            await store.commit(request("09:55"))

        with pytest.raises(SlotConflictError):
            asyncio.run(scenario())

    def test_concurrent_commits_for_same_start(self):
        store = _build_store()
        request = BookingRequest(
            provider_id=PROVIDER,
            client_name="Jane Doe",
            service="Botox Consultation",
            requested_start=_at("11:00"),
            duration_minutes=30,
        )

        async def scenario():
            return await asyncio.gather(
                store.commit(request),
                store.commit(request),
                return_exceptions=True,
            )

        results = asyncio.run(scenario())

        conflicts = [r for r in results if isinstance(r, SlotConflictError)]
        assert len(conflicts) == 1
        assert len(store.bookings) == 1
