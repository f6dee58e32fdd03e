"""Shared test fixtures and helpers."""

import asyncio
import os
from datetime import date, datetime
from typing import Optional

# Must be set before bookingcore.config is imported anywhere
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTOMATION_ENABLED", "false")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from bookingcore.database import Base
from bookingcore.models import (
    Availability,
    Booking,
    Contact,
    Conversation,
    FormSubmission,
    FormTemplate,
    Integration,
    ServiceType,
    Workspace,
)
from bookingcore.services.notification_service import NotificationDispatcher

# 2024-01-01 is a Monday (day_of_week == 1)
MONDAY = date(2024, 1, 1)


class FakeDispatcher(NotificationDispatcher):
    """Records every send; can be told to fail (by returning False or raising)"""

    channel = "email"

    def __init__(self, fail: bool = False, raise_error: bool = False):
        self.sent: list[tuple[str, str, dict]] = []
        self.attempts = 0
        self.fail = fail
        self.raise_error = raise_error

    async def send(self, kind: str, target: str, payload: dict) -> bool:
        self.attempts += 1
        # Yield to the loop so overlapping runs actually interleave
        await asyncio.sleep(0)
        if self.raise_error:
            raise RuntimeError("provider unavailable")
        if self.fail:
            return False
        self.sent.append((kind, target, payload))
        return True

    def kinds(self) -> list[str]:
        return [kind for kind, _, _ in self.sent]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def dispatcher():
    return FakeDispatcher()


# ---------------------------------------------------------------------------
# Factories - every helper commits so other sessions see the rows
# ---------------------------------------------------------------------------


def make_workspace(
    db,
    slug: str = "acme",
    with_integration: bool = True,
    settings: Optional[dict] = None,
    is_active: bool = True,
) -> Workspace:
    workspace = Workspace(
        business_name=f"{slug.title()} Studio",
        slug=slug,
        contact_email=f"owner@{slug}.test",
        is_active=is_active,
        settings=settings or {},
    )
    db.add(workspace)
    db.flush()
    if with_integration:
        db.add(Integration(workspace_id=workspace.id, type="email", provider="resend", is_active=True))
    db.commit()
    return workspace


def make_service(db, workspace: Workspace, duration: int = 30, name: str = "Consultation", **kwargs) -> ServiceType:
    service = ServiceType(workspace_id=workspace.id, name=name, duration_minutes=duration, **kwargs)
    db.add(service)
    db.commit()
    return service


def make_availability(
    db,
    workspace: Workspace,
    day_of_week: int = 1,
    intervals: Optional[list[tuple[str, str]]] = None,
    granularity: int = 30,
    is_available: bool = True,
) -> Availability:
    intervals = intervals if intervals is not None else [("09:00", "17:00")]
    availability = Availability(
        workspace_id=workspace.id,
        day_of_week=day_of_week,
        is_available=is_available,
        time_slots=[{"startTime": start, "endTime": end} for start, end in intervals],
        slot_duration_minutes=granularity,
    )
    db.add(availability)
    db.commit()
    return availability


def make_contact(db, workspace: Workspace, email: Optional[str] = "jane@example.com", name: str = "Jane Doe") -> Contact:
    contact = Contact(workspace_id=workspace.id, name=name, email=email, status="booked")
    db.add(contact)
    db.commit()
    return contact


def make_booking(
    db,
    workspace: Workspace,
    service: ServiceType,
    contact: Optional[Contact] = None,
    booking_date: date = MONDAY,
    start_time: str = "10:00",
    end_time: str = "10:30",
    status: str = "confirmed",
    reminder_sent: bool = False,
) -> Booking:
    contact = contact or make_contact(db, workspace)
    booking = Booking(
        workspace_id=workspace.id,
        contact_id=contact.id,
        service_type_id=service.id,
        booking_date=booking_date,
        start_time=start_time,
        end_time=end_time,
        status=status,
        reminder_sent=reminder_sent,
    )
    db.add(booking)
    db.commit()
    return booking


def make_form_template(db, workspace: Workspace, service_ids: Optional[list[int]] = None, due_in_hours: int = 24) -> FormTemplate:
    template = FormTemplate(
        workspace_id=workspace.id,
        name="Intake Form",
        fields=[{"name": "allergies", "type": "text"}],
        service_type_ids=service_ids or [],
        due_in_hours=due_in_hours,
    )
    db.add(template)
    db.commit()
    return template


def make_form_submission(
    db,
    booking: Booking,
    template: FormTemplate,
    due_at: datetime,
    status: str = "pending",
    reminder_count: int = 0,
    last_reminder_at: Optional[datetime] = None,
    max_reminders: Optional[int] = None,
) -> FormSubmission:
    submission = FormSubmission(
        workspace_id=booking.workspace_id,
        form_template_id=template.id,
        booking_id=booking.id,
        contact_id=booking.contact_id,
        status=status,
        due_at=due_at,
        reminder_count=reminder_count,
        last_reminder_at=last_reminder_at,
        max_reminders=max_reminders,
    )
    db.add(submission)
    db.commit()
    return submission


def pause_automation(db, workspace: Workspace, contact: Contact) -> Conversation:
    conversation = Conversation(workspace_id=workspace.id, contact_id=contact.id, automation_paused=True)
    db.add(conversation)
    db.commit()
    return conversation
