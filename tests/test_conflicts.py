"""
Tests for interval conflict detection.
"""

import pendulum

from spabooking.domain.conflicts import conflicting, overlaps
from spabooking.domain.models import ExistingAppointment, TimeRange

TZ = "America/New_York"


def _range(start: str, end: str) -> TimeRange:
    return TimeRange(
        start=pendulum.parse(f"2024-11-25 {start}", tz=TZ),
        end=pendulum.parse(f"2024-11-25 {end}", tz=TZ)
    )


class TestOverlaps:
    """Tests for the half-open overlap predicate."""

    def test_partial_overlap_is_symmetric(self):
        a = _range("09:00", "12:00")
        b = _range("11:00", "14:00")

        assert overlaps(a, b)
        assert overlaps(b, a)

    def test_touching_intervals_do_not_overlap(self):
        a = _range("09:00", "10:00")
        b = _range("10:00", "11:00")

        assert not overlaps(a, b)
        assert not overlaps(b, a)

    def test_containment_overlaps(self):
        outer = _range("09:00", "17:00")
        inner = _range("12:00", "12:30")

        assert overlaps(outer, inner)
        assert overlaps(inner, outer)

    def test_identical_intervals_overlap(self):
        assert overlaps(_range("09:00", "09:30"), _range("09:00", "09:30"))

    def test_disjoint_intervals(self):
        a = _range("09:00", "10:00")
        b = _range("14:00", "15:00")

        assert not overlaps(a, b)
        assert not overlaps(b, a)

    def test_time_range_method_routes_through_predicate(self):
        a = _range("09:00", "10:00")
        b = _range("09:59", "11:00")

        assert a.overlaps(b) == overlaps(a, b) == b.overlaps(a)

    def test_overlap_across_timezones(self):
        """The same instants expressed in another zone still conflict."""
        local = _range("09:00", "10:00")
        utc = TimeRange(
            start=pendulum.datetime(2024, 11, 25, 14, 30, tz="UTC"),
            end=pendulum.datetime(2024, 11, 25, 15, 30, tz="UTC")
        )

        assert overlaps(local, utc)


class TestConflicting:
    """Tests for finding conflicting appointments."""

    def test_cancelled_appointments_are_ignored(self):
        slot = _range("10:00", "10:30")
        start = pendulum.parse("2024-11-25 10:15", tz=TZ)
        active = ExistingAppointment(start=start, duration_minutes=30)
        cancelled = ExistingAppointment(start=start, duration_minutes=30, status="cancelled")

        assert conflicting(slot, [active, cancelled]) == [active]

    def test_appointment_ending_at_slot_start_is_not_a_conflict(self):
        slot = _range("10:00", "10:30")
        earlier = ExistingAppointment(start=pendulum.parse("2024-11-25 09:30", tz=TZ), duration_minutes=30)

        assert conflicting(slot, [earlier]) == []
