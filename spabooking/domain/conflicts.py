"""
Interval conflict detection.

Every slot-versus-appointment check goes through ``overlaps`` so there is a
single definition of what a conflict is: half-open intervals, where touching
ranges (one ends exactly when the other starts) do not conflict.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, List, Protocol

from pendulum import DateTime

if TYPE_CHECKING:
    from .models import ExistingAppointment


class Interval(Protocol):
    """Anything with a start and an end instant."""

    @property
    def start(self) -> DateTime: ...

    @property
    def end(self) -> DateTime: ...


def overlaps(a: Interval, b: Interval) -> bool:
    """Return True if the half-open intervals [a.start, a.end) and [b.start, b.end) intersect."""
    return a.start < b.end and b.start < a.end


def conflicting(
    interval: Interval,
    appointments: Iterable["ExistingAppointment"]
) -> List["ExistingAppointment"]:
    """Return the active appointments that overlap the given interval."""
    return [
        appt for appt in appointments
        if appt.is_active() and overlaps(interval, appt)
    ]
