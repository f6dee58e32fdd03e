"""Tests for HH:MM parsing and minute arithmetic."""

from datetime import date, datetime

import pytest

from bookingcore.domain.scheduling.time_calculator import (
    add_minutes,
    combine,
    day_of_week,
    format_minutes,
    parse_date,
    parse_hhmm,
)
from bookingcore.exceptions import ConfigurationError


class TestParseHHMM:
    def test_parses_morning_time(self):
        assert parse_hhmm("09:30") == 570

    def test_midnight_is_zero(self):
        assert parse_hhmm("00:00") == 0

    def test_end_of_day(self):
        assert parse_hhmm("24:00") == 1440

    @pytest.mark.parametrize("value", ["9:30", "09:60", "25:00", "24:01", "abc", "", None, "09:30:00"])
    def test_rejects_malformed(self, value):
        with pytest.raises(ConfigurationError):
            parse_hhmm(value)


class TestFormatting:
    def test_format_pads(self):
        assert format_minutes(65) == "01:05"

    def test_format_out_of_range(self):
        with pytest.raises(ValueError):
            format_minutes(1441)

    def test_add_minutes(self):
        assert add_minutes("16:30", 30) == "17:00"

    def test_add_minutes_past_midnight_rejected(self):
        with pytest.raises(ConfigurationError):
            add_minutes("23:45", 30)


class TestDates:
    def test_sunday_is_zero(self):
        assert day_of_week(date(2023, 12, 31)) == 0

    def test_monday_is_one(self):
        assert day_of_week(date(2024, 1, 1)) == 1

    def test_saturday_is_six(self):
        assert day_of_week(date(2024, 1, 6)) == 6

    def test_combine(self):
        assert combine(date(2024, 1, 1), "14:00") == datetime(2024, 1, 1, 14, 0)

    def test_parse_date_ignores_time_component(self):
        assert parse_date("2024-01-01T10:00:00") == date(2024, 1, 1)

    def test_parse_date_invalid(self):
        with pytest.raises(ValueError):
            parse_date("01/01/2024")
