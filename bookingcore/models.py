import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

# Booking statuses that occupy the ledger
LEDGER_STATUSES = ("confirmed", "completed")
BOOKING_STATUSES = ("confirmed", "completed", "no-show", "cancelled")
FORM_STATUSES = ("pending", "overdue", "completed")


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


class Workspace(Base):
    """A tenant: one business with its own bookings, contacts and automation"""

    __tablename__ = "workspaces"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, nullable=False, default=generate_public_id)
    business_name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, index=True, nullable=False)
    contact_email = Column(String(255), nullable=True)
    timezone = Column(String(64), default="UTC")  # Advisory only, never applied to slot math
    is_active = Column(Boolean, default=True, nullable=False)
    # Free-form settings; automation thresholds live under settings["automation"]
    settings = Column(JSON, default=dict, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    availability = relationship("Availability", back_populates="workspace")
    service_types = relationship("ServiceType", back_populates="workspace")
    integrations = relationship("Integration", back_populates="workspace")


class Availability(Base):
    """Recurring weekly open hours for a single weekday"""

    __tablename__ = "availability"
    __table_args__ = (UniqueConstraint("workspace_id", "day_of_week", name="uq_availability_day"),)

    id = Column(Integer, primary_key=True, index=True)
    workspace_id = Column(Integer, ForeignKey("workspaces.id"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)  # 0 = Sunday, 6 = Saturday
    is_available = Column(Boolean, default=True, nullable=False)
    # [{"startTime": "09:00", "endTime": "17:00"}, ...]
    time_slots = Column(JSON, default=list, nullable=False)
    slot_duration_minutes = Column(Integer, default=30, nullable=False)  # Cursor step
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    workspace = relationship("Workspace", back_populates="availability")


class ServiceType(Base):
    __tablename__ = "service_types"

    id = Column(Integer, primary_key=True, index=True)
    workspace_id = Column(Integer, ForeignKey("workspaces.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    duration_minutes = Column(Integer, nullable=False)
    buffer_minutes = Column(Integer, default=0, nullable=False)  # Time after appointment
    price = Column(Float, default=0)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    workspace = relationship("Workspace", back_populates="service_types")


class Contact(Base):
    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True, index=True)
    workspace_id = Column(Integer, ForeignKey("workspaces.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(50), nullable=True)
    source = Column(String(50), default="booking")
    status = Column(String(50), default="new")  # new, booked, active, inactive
    created_at = Column(DateTime, server_default=func.now())


class Booking(Base):
    """A reservation; confirmed/completed rows form the ledger for conflict checks"""

    __tablename__ = "bookings"
    __table_args__ = (Index("ix_bookings_workspace_date", "workspace_id", "booking_date"),)

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, nullable=False, default=generate_public_id)
    workspace_id = Column(Integer, ForeignKey("workspaces.id"), nullable=False)
    contact_id = Column(Integer, ForeignKey("contacts.id"), nullable=False, index=True)
    service_type_id = Column(Integer, ForeignKey("service_types.id"), nullable=False)
    booking_date = Column(Date, nullable=False)
    start_time = Column(String(5), nullable=False)  # HH:MM
    end_time = Column(String(5), nullable=False)  # HH:MM
    # confirmed, completed, no-show, cancelled
    status = Column(String(20), default="confirmed", nullable=False, index=True)
    notes = Column(Text, nullable=True)
    reminder_sent = Column(Boolean, default=False, nullable=False)
    forms_sent = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    contact = relationship("Contact")
    service_type = relationship("ServiceType")


class FormTemplate(Base):
    __tablename__ = "form_templates"

    id = Column(Integer, primary_key=True, index=True)
    workspace_id = Column(Integer, ForeignKey("workspaces.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    fields = Column(JSON, default=list)
    service_type_ids = Column(JSON, default=list)  # Services that trigger this form
    due_in_hours = Column(Integer, default=24, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class FormSubmission(Base):
    """A form the contact still owes; drives form reminders"""

    __tablename__ = "form_submissions"
    __table_args__ = (Index("ix_form_submissions_workspace_status", "workspace_id", "status"),)

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, nullable=False, default=generate_public_id)
    workspace_id = Column(Integer, ForeignKey("workspaces.id"), nullable=False)
    form_template_id = Column(Integer, ForeignKey("form_templates.id"), nullable=False)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    contact_id = Column(Integer, ForeignKey("contacts.id"), nullable=False, index=True)
    # pending -> overdue (time-triggered); completed is terminal and set externally
    status = Column(String(20), default="pending", nullable=False, index=True)
    answers = Column(JSON, nullable=True)
    sent_at = Column(DateTime, server_default=func.now())
    due_at = Column(DateTime, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    reminder_count = Column(Integer, default=0, nullable=False)
    last_reminder_at = Column(DateTime, nullable=True)
    max_reminders = Column(Integer, nullable=True)  # Overrides the workspace cap when set
    created_at = Column(DateTime, server_default=func.now())

    contact = relationship("Contact")
    form_template = relationship("FormTemplate")


class Conversation(Base):
    """One thread per (workspace, contact); carries the automation pause flag"""

    __tablename__ = "conversations"
    __table_args__ = (UniqueConstraint("workspace_id", "contact_id", name="uq_conversation_contact"),)

    id = Column(Integer, primary_key=True, index=True)
    workspace_id = Column(Integer, ForeignKey("workspaces.id"), nullable=False, index=True)
    contact_id = Column(Integer, ForeignKey("contacts.id"), nullable=False, index=True)
    status = Column(String(20), default="open", nullable=False)  # open, closed
    last_message_at = Column(DateTime, server_default=func.now())
    unread_count = Column(Integer, default=0, nullable=False)
    # Set by staff replies; cleared only by staff. Automation never writes it.
    automation_paused = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    workspace_id = Column(Integer, ForeignKey("workspaces.id"), nullable=False, index=True)
    conversation_id = Column(Integer, ForeignKey("conversations.id"), nullable=False, index=True)
    contact_id = Column(Integer, ForeignKey("contacts.id"), nullable=False)
    direction = Column(String(20), nullable=False)  # inbound, outbound
    channel = Column(String(20), nullable=False)  # email, sms, system
    content = Column(Text, nullable=False)
    is_automated = Column(Boolean, default=False, nullable=False)
    status = Column(String(20), default="sent")  # sent, received, failed
    created_at = Column(DateTime, server_default=func.now())


class Integration(Base):
    __tablename__ = "integrations"

    id = Column(Integer, primary_key=True, index=True)
    workspace_id = Column(Integer, ForeignKey("workspaces.id"), nullable=False, index=True)
    type = Column(String(20), nullable=False)  # email, sms, calendar
    provider = Column(String(50), nullable=False)  # resend, smtp, twilio, google-calendar
    is_active = Column(Boolean, default=True, nullable=False)
    config = Column(JSON, nullable=True)
    last_sync_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    workspace = relationship("Workspace", back_populates="integrations")


class OpsLog(Base):
    """Operational event log visible to workspace staff"""

    __tablename__ = "ops_logs"
    __table_args__ = (Index("ix_ops_logs_workspace_created", "workspace_id", "created_at"),)

    id = Column(Integer, primary_key=True, index=True)
    workspace_id = Column(Integer, ForeignKey("workspaces.id"), nullable=False)
    level = Column(String(10), default="info", nullable=False)  # info, error
    source = Column(String(50), default="system", nullable=False)
    message = Column(Text, nullable=False)
    meta = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
