"""
Slot availability engine
Turns recurring weekly open hours into bookable slots for one day,
skipping anything that overlaps the booking ledger.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ...exceptions import ConfigurationError, NotFoundError
from .conflict_guard import Interval, booking_conflicts_with_ledger
from .repository import SchedulingRepository
from .time_calculator import day_of_week, parse_hhmm

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Slot:
    start_time: str
    end_time: str
    available: bool = True

    def to_dict(self) -> dict:
        return {"startTime": self.start_time, "endTime": self.end_time, "available": self.available}


def parse_window_intervals(time_slots: Iterable[dict]) -> list[Interval]:
    """
    Convert stored {"startTime", "endTime"} entries to intervals, in stored order.

    Raises:
        ConfigurationError: On malformed times or an interval that does not end after it starts
    """
    intervals = []
    for entry in time_slots or []:
        try:
            start_raw, end_raw = entry["startTime"], entry["endTime"]
        except (KeyError, TypeError):
            raise ConfigurationError(f"Availability interval is missing startTime/endTime: {entry!r}") from None

        interval = Interval(parse_hhmm(start_raw), parse_hhmm(end_raw))
        if interval.end <= interval.start:
            raise ConfigurationError(f"Availability interval {start_raw}-{end_raw} must end after it starts")
        intervals.append(interval)
    return intervals


def generate_slots(
    intervals: list[Interval],
    granularity_minutes: int,
    duration_minutes: int,
    ledger: Iterable,
) -> list[Interval]:
    """
    Walk each open interval in steps of `granularity_minutes` and emit every
    `duration_minutes` candidate that fits inside the interval and does not
    overlap the ledger. Order: interval order, then chronological.
    """
    if granularity_minutes is None or granularity_minutes <= 0:
        raise ConfigurationError(f"Slot granularity must be positive, got {granularity_minutes}")
    if duration_minutes is None or duration_minutes <= 0:
        raise ConfigurationError(f"Service duration must be positive, got {duration_minutes}")

    ledger = list(ledger)
    slots: list[Interval] = []
    seen: set[Interval] = set()

    for interval in intervals:
        cursor = interval.start
        while cursor + duration_minutes <= interval.end:
            candidate = Interval(cursor, cursor + duration_minutes)
            # Overlapping configured intervals can produce the same candidate twice
            if candidate not in seen and not booking_conflicts_with_ledger(candidate, ledger):
                slots.append(candidate)
                seen.add(candidate)
            cursor += granularity_minutes

    return slots


class SlotAvailabilityEngine:
    """Computes bookable slots and validates requested intervals against the ledger"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = SchedulingRepository()

    def compute_slots(
        self, workspace_id: int, booking_date: date, service_duration_minutes: int
    ) -> list[Slot]:
        """Ordered bookable slots for a date and a service duration"""
        availability = self.repo.get_availability_for_day(
            self.db, workspace_id, day_of_week(booking_date)
        )
        if not availability or not availability.is_available or not availability.time_slots:
            return []

        intervals = parse_window_intervals(availability.time_slots)
        ledger = self.repo.get_ledger(self.db, workspace_id, booking_date)
        slots = generate_slots(
            intervals, availability.slot_duration_minutes, service_duration_minutes, ledger
        )

        logger.debug(
            f"Computed {len(slots)} slots for workspace {workspace_id} on {booking_date} "
            f"({service_duration_minutes} min, {len(ledger)} booked)"
        )
        return [Slot(start_time=s.start_time, end_time=s.end_time) for s in slots]

    def get_available_slots(
        self, workspace_id: int, booking_date: date, service_type_id: int
    ) -> list[Slot]:
        """Slot query for a service; raises NotFoundError for an unknown or inactive service"""
        service_type = self.repo.get_service_type(self.db, service_type_id, workspace_id)
        if not service_type or not service_type.is_active:
            raise NotFoundError("Service type not found")
        return self.compute_slots(workspace_id, booking_date, service_type.duration_minutes)

    def is_slot_available(
        self,
        workspace_id: int,
        booking_date: date,
        start_time: str,
        end_time: str,
        exclude_booking_id: Optional[int] = None,
    ) -> bool:
        """Booking validation: True when the interval is free of ledger conflicts"""
        candidate = Interval.from_hhmm(start_time, end_time)
        if candidate.end <= candidate.start:
            raise ConfigurationError(f"Interval {start_time}-{end_time} must end after it starts")
        ledger = self.repo.get_ledger(self.db, workspace_id, booking_date)
        return not booking_conflicts_with_ledger(candidate, ledger, exclude_booking_id)
