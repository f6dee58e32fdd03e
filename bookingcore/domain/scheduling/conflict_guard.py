"""Overlap predicate shared by slot generation and booking validation"""

from dataclasses import dataclass
from typing import Iterable, Optional

from ...models import LEDGER_STATUSES
from .time_calculator import format_minutes, parse_hhmm


@dataclass(frozen=True)
class Interval:
    """Half-open [start, end) interval in minutes since midnight"""

    start: int
    end: int

    @classmethod
    def from_hhmm(cls, start_time: str, end_time: str) -> "Interval":
        return cls(parse_hhmm(start_time), parse_hhmm(end_time))

    @property
    def start_time(self) -> str:
        return format_minutes(self.start)

    @property
    def end_time(self) -> str:
        return format_minutes(self.end)


def overlaps(a: Interval, b: Interval) -> bool:
    """
    Half-open overlap test.

    Touching intervals (a.end == b.start) do not overlap, so back-to-back
    bookings are legal.
    """
    return a.start < b.end and a.end > b.start


def booking_interval(booking) -> Interval:
    return Interval.from_hhmm(booking.start_time, booking.end_time)


def find_conflicting_booking(
    candidate: Interval, ledger: Iterable, exclude_booking_id: Optional[int] = None
):
    """Return the first ledger booking overlapping `candidate`, or None"""
    for booking in ledger:
        if booking.status not in LEDGER_STATUSES:
            continue
        if exclude_booking_id is not None and booking.id == exclude_booking_id:
            continue
        if overlaps(candidate, booking_interval(booking)):
            return booking
    return None


def booking_conflicts_with_ledger(
    candidate: Interval, ledger: Iterable, exclude_booking_id: Optional[int] = None
) -> bool:
    """
    True iff a confirmed/completed ledger entry other than `exclude_booking_id`
    overlaps the candidate interval.
    """
    return find_conflicting_booking(candidate, ledger, exclude_booking_id) is not None
