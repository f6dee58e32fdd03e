"""Scheduling domain schemas - Pydantic models for validation"""

import re
from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ...models import BOOKING_STATUSES

HHMM_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$|^24:00$")


def validate_hhmm(value: str) -> str:
    if not isinstance(value, str) or not HHMM_PATTERN.match(value):
        raise ValueError(f"Invalid time '{value}', expected HH:MM")
    return value


def _minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


# ============================================================================
# AVAILABILITY
# ============================================================================


class TimeSlot(BaseModel):
    """One open interval within a weekday"""

    startTime: str
    endTime: str

    @field_validator("startTime", "endTime")
    @classmethod
    def validate_time(cls, v):
        return validate_hhmm(v)

    @model_validator(mode="after")
    def validate_order(self):
        if _minutes(self.endTime) <= _minutes(self.startTime):
            raise ValueError(f"Interval {self.startTime}-{self.endTime} must end after it starts")
        return self


class AvailabilityDay(BaseModel):
    dayOfWeek: int = Field(ge=0, le=6)  # 0 = Sunday
    isAvailable: bool = True
    timeSlots: list[TimeSlot] = []
    slotDurationMinutes: int = Field(default=30, gt=0)

    @model_validator(mode="after")
    def validate_no_overlap(self):
        ordered = sorted(self.timeSlots, key=lambda s: _minutes(s.startTime))
        for previous, current in zip(ordered, ordered[1:]):
            if _minutes(current.startTime) < _minutes(previous.endTime):
                raise ValueError(
                    f"Intervals {previous.startTime}-{previous.endTime} and "
                    f"{current.startTime}-{current.endTime} overlap"
                )
        return self


class BatchAvailabilityUpdate(BaseModel):
    availability: list[AvailabilityDay]

    @field_validator("availability")
    @classmethod
    def validate_unique_days(cls, v):
        days = [day.dayOfWeek for day in v]
        if len(days) != len(set(days)):
            raise ValueError("Each dayOfWeek may appear only once")
        return v


class AvailabilityResponse(BaseModel):
    id: int
    dayOfWeek: int
    isAvailable: bool
    timeSlots: list[dict]
    slotDurationMinutes: int


# ============================================================================
# SLOTS
# ============================================================================


class SlotResponse(BaseModel):
    startTime: str
    endTime: str
    available: bool = True


class AvailableSlotsResponse(BaseModel):
    bookingDate: date
    serviceTypeId: int
    durationMinutes: int
    slots: list[SlotResponse]


# ============================================================================
# BOOKINGS
# ============================================================================


class ContactInfo(BaseModel):
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Name is required")
        return v.strip()

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        if v is None or not v.strip():
            return None
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("Invalid email address")
        return v


class PublicBookingCreate(BaseModel):
    """Schema for the public booking page"""

    workspaceSlug: str
    serviceTypeId: int
    bookingDate: date
    startTime: str
    contactInfo: ContactInfo
    notes: Optional[str] = None

    @field_validator("startTime")
    @classmethod
    def validate_start(cls, v):
        return validate_hhmm(v)


class BookingCheckRequest(BaseModel):
    """Booking validation request; excludeBookingId lets a booking ignore itself"""

    workspaceId: int
    bookingDate: date
    startTime: str
    endTime: str
    excludeBookingId: Optional[int] = None

    @field_validator("startTime", "endTime")
    @classmethod
    def validate_time(cls, v):
        return validate_hhmm(v)


class BookingCheckResponse(BaseModel):
    available: bool


class RescheduleRequest(BaseModel):
    bookingDate: date
    startTime: str

    @field_validator("startTime")
    @classmethod
    def validate_start(cls, v):
        return validate_hhmm(v)


class StatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v not in BOOKING_STATUSES:
            raise ValueError(f"Status must be one of: {', '.join(BOOKING_STATUSES)}")
        return v


class BookingResponse(BaseModel):
    """Schema for booking response"""

    id: int
    public_id: str
    workspaceId: int
    contactId: int
    serviceTypeId: int
    serviceName: Optional[str] = None
    contactName: Optional[str] = None
    contactEmail: Optional[str] = None
    bookingDate: date
    startTime: str
    endTime: str
    status: str
    notes: Optional[str] = None
    reminderSent: bool
    formsSent: bool
    created_at: Optional[datetime] = None

    @classmethod
    def from_booking(cls, booking) -> "BookingResponse":
        return cls(
            id=booking.id,
            public_id=booking.public_id,
            workspaceId=booking.workspace_id,
            contactId=booking.contact_id,
            serviceTypeId=booking.service_type_id,
            serviceName=booking.service_type.name if booking.service_type else None,
            contactName=booking.contact.name if booking.contact else None,
            contactEmail=booking.contact.email if booking.contact else None,
            bookingDate=booking.booking_date,
            startTime=booking.start_time,
            endTime=booking.end_time,
            status=booking.status,
            notes=booking.notes,
            reminderSent=booking.reminder_sent,
            formsSent=booking.forms_sent,
            created_at=booking.created_at,
        )


class BookingStats(BaseModel):
    total: int
    confirmed: int = 0
    completed: int = 0
    cancelled: int = 0
    noShow: int = 0


# ============================================================================
# FORMS
# ============================================================================


class FormCompleteRequest(BaseModel):
    answers: dict[str, Any] = {}


class FormSubmissionResponse(BaseModel):
    id: int
    public_id: str
    status: str
    dueAt: datetime
    completedAt: Optional[datetime] = None
    reminderCount: int
