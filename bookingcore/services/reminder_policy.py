"""
Reminder eligibility rules
Stateless checks deciding whether a booking or a pending form is due for a
reminder at a given instant. Nothing here touches the database.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from ..config import (
    DEFAULT_BOOKING_REMINDER_LEAD_MINUTES,
    DEFAULT_FORM_REMINDER_COOLDOWN_HOURS,
    DEFAULT_FORM_REMINDER_MAX,
    PLACEHOLDER_EMAIL_DOMAIN,
)
from ..domain.scheduling.time_calculator import combine

REMINDABLE_FORM_STATUSES = ("pending", "overdue")


def _positive(value: Any, default, cast):
    """Coerce a settings value; missing, non-numeric or non-positive falls back to the default"""
    try:
        number = cast(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


@dataclass(frozen=True)
class AutomationConfig:
    """Per-workspace automation thresholds with defaults applied once"""

    booking_reminder_lead_minutes: int = DEFAULT_BOOKING_REMINDER_LEAD_MINUTES
    form_reminder_cooldown_hours: float = DEFAULT_FORM_REMINDER_COOLDOWN_HOURS
    form_reminder_max: int = DEFAULT_FORM_REMINDER_MAX

    @classmethod
    def from_workspace_settings(cls, settings: Optional[dict]) -> "AutomationConfig":
        automation = (settings or {}).get("automation") or {}
        return cls(
            booking_reminder_lead_minutes=_positive(
                automation.get("bookingReminderLeadMinutes"), DEFAULT_BOOKING_REMINDER_LEAD_MINUTES, int
            ),
            form_reminder_cooldown_hours=_positive(
                automation.get("formReminderCooldownHours"), DEFAULT_FORM_REMINDER_COOLDOWN_HOURS, float
            ),
            form_reminder_max=_positive(
                automation.get("formReminderMax"), DEFAULT_FORM_REMINDER_MAX, int
            ),
        )


def is_contactable(contact) -> bool:
    """A contact needs a real email address; placeholder addresses don't count"""
    email = getattr(contact, "email", None) if contact is not None else None
    if not email:
        return False
    return not str(email).strip().lower().endswith(f"@{PLACEHOLDER_EMAIL_DOMAIN}")


class ReminderEligibilityPolicy:
    """Timing and gating rules for booking and form reminders"""

    def __init__(self, config: Optional[AutomationConfig] = None):
        self.config = config or AutomationConfig()

    def booking_reminder_window(self, booking) -> tuple[datetime, datetime]:
        """(earliest send time, appointment start) for a booking"""
        appointment_start = combine(booking.booking_date, booking.start_time)
        lead = timedelta(minutes=self.config.booking_reminder_lead_minutes)
        return appointment_start - lead, appointment_start

    def booking_timing_due(self, booking, now: datetime) -> bool:
        if booking.reminder_sent or booking.status != "confirmed":
            return False
        opens_at, appointment_start = self.booking_reminder_window(booking)
        # Once the appointment has started the reminder is stale and skipped
        return opens_at <= now <= appointment_start

    def booking_reminder_due(self, booking, now: datetime, contact, paused: bool = False) -> bool:
        if not is_contactable(contact):
            return False
        if paused:
            return False
        return self.booking_timing_due(booking, now)

    def max_reminders_for(self, submission) -> int:
        if submission.max_reminders is not None:
            return submission.max_reminders
        return self.config.form_reminder_max

    def form_timing_due(self, submission, now: datetime) -> bool:
        if submission.status not in REMINDABLE_FORM_STATUSES:
            return False
        if submission.due_at > now:
            return False
        if submission.reminder_count >= self.max_reminders_for(submission):
            return False
        if submission.last_reminder_at is None:
            return True
        cooldown = timedelta(hours=self.config.form_reminder_cooldown_hours)
        return now - submission.last_reminder_at >= cooldown

    def form_reminder_due(self, submission, now: datetime, contact, paused: bool = False) -> bool:
        if not is_contactable(contact):
            return False
        if paused:
            return False
        return self.form_timing_due(submission, now)
