"""Tests for slot generation and booking validation."""

from datetime import timedelta

import pytest

from bookingcore.domain.scheduling.availability_service import (
    SlotAvailabilityEngine,
    generate_slots,
    parse_window_intervals,
)
from bookingcore.domain.scheduling.conflict_guard import Interval
from bookingcore.exceptions import ConfigurationError, NotFoundError
from tests.conftest import (
    MONDAY,
    make_availability,
    make_booking,
    make_service,
    make_workspace,
)


class TestGenerateSlots:
    def test_full_day_half_hour_slots(self):
        slots = generate_slots([Interval.from_hhmm("09:00", "17:00")], 30, 30, [])
        assert len(slots) == 16
        assert (slots[0].start_time, slots[0].end_time) == ("09:00", "09:30")
        assert (slots[-1].start_time, slots[-1].end_time) == ("16:30", "17:00")

    def test_candidate_must_fit_inside_interval(self):
        slots = generate_slots([Interval.from_hhmm("09:00", "10:00")], 15, 45, [])
        assert [s.start_time for s in slots] == ["09:00", "09:15"]

    def test_duration_longer_than_interval(self):
        assert generate_slots([Interval.from_hhmm("09:00", "09:30")], 30, 60, []) == []

    def test_preserves_interval_order(self):
        intervals = [Interval.from_hhmm("14:00", "15:00"), Interval.from_hhmm("09:00", "10:00")]
        slots = generate_slots(intervals, 30, 30, [])
        assert [s.start_time for s in slots] == ["14:00", "14:30", "09:00", "09:30"]

    def test_overlapping_intervals_do_not_duplicate(self):
        intervals = [Interval.from_hhmm("09:00", "10:00"), Interval.from_hhmm("09:30", "10:30")]
        slots = generate_slots(intervals, 30, 30, [])
        assert [s.start_time for s in slots] == ["09:00", "09:30", "10:00"]

    @pytest.mark.parametrize("granularity,duration", [(0, 30), (30, 0), (-15, 30)])
    def test_non_positive_values_rejected(self, granularity, duration):
        with pytest.raises(ConfigurationError):
            generate_slots([Interval.from_hhmm("09:00", "10:00")], granularity, duration, [])


class TestParseWindowIntervals:
    def test_end_before_start(self):
        with pytest.raises(ConfigurationError):
            parse_window_intervals([{"startTime": "17:00", "endTime": "09:00"}])

    def test_missing_key(self):
        with pytest.raises(ConfigurationError):
            parse_window_intervals([{"startTime": "09:00"}])

    def test_malformed_time(self):
        with pytest.raises(ConfigurationError):
            parse_window_intervals([{"startTime": "9am", "endTime": "17:00"}])


class TestSlotAvailabilityEngine:
    def test_monday_sixteen_slots(self, db):
        workspace = make_workspace(db)
        service = make_service(db, workspace, duration=30)
        make_availability(db, workspace, day_of_week=1)

        slots = SlotAvailabilityEngine(db).get_available_slots(workspace.id, MONDAY, service.id)

        assert len(slots) == 16
        assert slots[0].to_dict() == {"startTime": "09:00", "endTime": "09:30", "available": True}

    def test_confirmed_booking_removes_slot(self, db):
        workspace = make_workspace(db)
        service = make_service(db, workspace, duration=30)
        make_availability(db, workspace, day_of_week=1)
        make_booking(db, workspace, service, start_time="10:00", end_time="10:30")

        slots = SlotAvailabilityEngine(db).get_available_slots(workspace.id, MONDAY, service.id)

        assert len(slots) == 15
        assert "10:00" not in [s.start_time for s in slots]

    def test_cancelled_booking_frees_slot(self, db):
        workspace = make_workspace(db)
        service = make_service(db, workspace, duration=30)
        make_availability(db, workspace, day_of_week=1)
        make_booking(db, workspace, service, start_time="10:00", end_time="10:30", status="cancelled")

        slots = SlotAvailabilityEngine(db).get_available_slots(workspace.id, MONDAY, service.id)
        assert len(slots) == 16

    def test_no_availability_row(self, db):
        workspace = make_workspace(db)
        service = make_service(db, workspace)
        assert SlotAvailabilityEngine(db).get_available_slots(workspace.id, MONDAY, service.id) == []

    def test_day_marked_unavailable(self, db):
        workspace = make_workspace(db)
        service = make_service(db, workspace)
        make_availability(db, workspace, day_of_week=1, is_available=False)
        assert SlotAvailabilityEngine(db).get_available_slots(workspace.id, MONDAY, service.id) == []

    def test_other_weekday_not_used(self, db):
        workspace = make_workspace(db)
        service = make_service(db, workspace)
        make_availability(db, workspace, day_of_week=1)
        tuesday = MONDAY + timedelta(days=1)
        assert SlotAvailabilityEngine(db).get_available_slots(workspace.id, tuesday, service.id) == []

    def test_unknown_service(self, db):
        workspace = make_workspace(db)
        with pytest.raises(NotFoundError):
            SlotAvailabilityEngine(db).get_available_slots(workspace.id, MONDAY, 999)

    def test_inactive_service(self, db):
        workspace = make_workspace(db)
        service = make_service(db, workspace, is_active=False)
        with pytest.raises(NotFoundError):
            SlotAvailabilityEngine(db).get_available_slots(workspace.id, MONDAY, service.id)

    def test_malformed_stored_interval_fails_fast(self, db):
        workspace = make_workspace(db)
        service = make_service(db, workspace)
        make_availability(db, workspace, day_of_week=1, intervals=[("17:00", "09:00")])
        with pytest.raises(ConfigurationError):
            SlotAvailabilityEngine(db).get_available_slots(workspace.id, MONDAY, service.id)

    def test_generated_slots_never_conflict(self, db):
        workspace = make_workspace(db)
        service = make_service(db, workspace, duration=45)
        make_availability(db, workspace, day_of_week=1, granularity=15)
        make_booking(db, workspace, service, start_time="11:00", end_time="11:45")
        make_booking(db, workspace, service, start_time="13:15", end_time="14:00")

        engine = SlotAvailabilityEngine(db)
        slots = engine.get_available_slots(workspace.id, MONDAY, service.id)

        assert slots
        for slot in slots:
            assert engine.is_slot_available(workspace.id, MONDAY, slot.start_time, slot.end_time)

    def test_is_slot_available_excludes_self(self, db):
        workspace = make_workspace(db)
        service = make_service(db, workspace)
        booking = make_booking(db, workspace, service, start_time="10:00", end_time="10:30")
        engine = SlotAvailabilityEngine(db)

        assert not engine.is_slot_available(workspace.id, MONDAY, "10:00", "10:30")
        assert engine.is_slot_available(workspace.id, MONDAY, "10:00", "10:30", exclude_booking_id=booking.id)

    def test_is_slot_available_rejects_inverted_interval(self, db):
        workspace = make_workspace(db)
        with pytest.raises(ConfigurationError):
            SlotAvailabilityEngine(db).is_slot_available(workspace.id, MONDAY, "11:00", "10:00")
