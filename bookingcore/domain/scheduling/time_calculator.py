"""Time parsing and calculations for scheduling.

Times of day are stored and exchanged as "HH:MM" strings. They are converted
once to minutes since midnight for all arithmetic and comparisons and only
formatted back at the boundary.
"""

import re
from datetime import date, datetime, timedelta

from ...exceptions import ConfigurationError

MINUTES_PER_DAY = 24 * 60

_HHMM_PATTERN = re.compile(r"^(\d{2}):(\d{2})$")


def parse_hhmm(value: str) -> int:
    """
    Parse "HH:MM" into minutes since midnight.

    "24:00" is accepted as the end of the day (1440).

    Raises:
        ConfigurationError: If the value is not a well-formed 24h time
    """
    match = _HHMM_PATTERN.match(str(value or "").strip())
    if not match:
        raise ConfigurationError(f"Invalid time format: {value!r}. Expected HH:MM")

    hour, minute = int(match.group(1)), int(match.group(2))
    if hour == 24 and minute == 0:
        return MINUTES_PER_DAY
    if hour > 23 or minute > 59:
        raise ConfigurationError(f"Invalid time of day: {value!r}")
    return hour * 60 + minute


def format_minutes(minutes: int) -> str:
    """Format minutes since midnight as "HH:MM" """
    if minutes < 0 or minutes > MINUTES_PER_DAY:
        raise ValueError(f"Minutes out of range for a single day: {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def add_minutes(time_str: str, minutes: int) -> str:
    """Return the "HH:MM" that is `minutes` after `time_str` on the same day"""
    total = parse_hhmm(time_str) + minutes
    if total > MINUTES_PER_DAY:
        raise ConfigurationError(f"{time_str} + {minutes} minutes runs past midnight")
    return format_minutes(total)


def day_of_week(day: date) -> int:
    """Weekday index with 0 = Sunday ... 6 = Saturday"""
    # date.weekday() is 0 = Monday
    return (day.weekday() + 1) % 7


def combine(day: date, time_str: str) -> datetime:
    """Naive local datetime for a booking date and an "HH:MM" start"""
    return datetime.combine(day, datetime.min.time()) + timedelta(minutes=parse_hhmm(time_str))


def parse_date(value: str) -> date:
    """Parse a YYYY-MM-DD string (a trailing time component is ignored)"""
    try:
        return datetime.fromisoformat(str(value).strip()).date()
    except ValueError:
        raise ValueError(f"Invalid date format: {value!r}. Expected YYYY-MM-DD") from None
