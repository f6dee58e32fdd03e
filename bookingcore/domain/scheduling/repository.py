"""Scheduling repository - Database operations for availability, bookings and forms"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import (
    LEDGER_STATUSES,
    Availability,
    Booking,
    Contact,
    Conversation,
    FormSubmission,
    FormTemplate,
    Message,
    ServiceType,
    Workspace,
)


class SchedulingRepository:
    """Repository for scheduling database operations"""

    # Workspace Methods
    @staticmethod
    def get_workspace(db: Session, workspace_id: int) -> Optional[Workspace]:
        return db.query(Workspace).filter(Workspace.id == workspace_id).first()

    @staticmethod
    def get_active_workspace_by_slug(db: Session, slug: str) -> Optional[Workspace]:
        return (
            db.query(Workspace)
            .filter(Workspace.slug == slug, Workspace.is_active.is_(True))
            .first()
        )

    @staticmethod
    def lock_workspace(db: Session, workspace_id: int) -> Optional[Workspace]:
        """Row-lock the workspace for the rest of the transaction (no-op on SQLite)"""
        return (
            db.query(Workspace).filter(Workspace.id == workspace_id).with_for_update().first()
        )

    # Availability Methods
    @staticmethod
    def get_availability_for_day(
        db: Session, workspace_id: int, day_of_week: int
    ) -> Optional[Availability]:
        return (
            db.query(Availability)
            .filter(Availability.workspace_id == workspace_id, Availability.day_of_week == day_of_week)
            .first()
        )

    @staticmethod
    def list_availability(db: Session, workspace_id: int) -> list[Availability]:
        return (
            db.query(Availability)
            .filter(Availability.workspace_id == workspace_id)
            .order_by(Availability.day_of_week.asc())
            .all()
        )

    @staticmethod
    def upsert_availability(db: Session, workspace_id: int, day_of_week: int, **fields) -> Availability:
        """Insert or update the single availability row for a weekday (caller commits)"""
        availability = SchedulingRepository.get_availability_for_day(db, workspace_id, day_of_week)
        if availability is None:
            availability = Availability(workspace_id=workspace_id, day_of_week=day_of_week)
            db.add(availability)
        for key, value in fields.items():
            setattr(availability, key, value)
        return availability

    # Service Methods
    @staticmethod
    def get_service_type(
        db: Session, service_type_id: int, workspace_id: Optional[int] = None
    ) -> Optional[ServiceType]:
        query = db.query(ServiceType).filter(ServiceType.id == service_type_id)
        if workspace_id is not None:
            query = query.filter(ServiceType.workspace_id == workspace_id)
        return query.first()

    # Ledger / Booking Methods
    @staticmethod
    def get_ledger(db: Session, workspace_id: int, booking_date: date) -> list[Booking]:
        """Confirmed/completed bookings for a workspace on one day"""
        return (
            db.query(Booking)
            .filter(
                Booking.workspace_id == workspace_id,
                Booking.booking_date == booking_date,
                Booking.status.in_(LEDGER_STATUSES),
            )
            .order_by(Booking.start_time.asc())
            .all()
        )

    @staticmethod
    def get_booking(db: Session, booking_id: int) -> Optional[Booking]:
        return db.query(Booking).filter(Booking.id == booking_id).first()

    @staticmethod
    def list_bookings(
        db: Session,
        workspace_id: int,
        status: Optional[str] = None,
        booking_date: Optional[date] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[Booking]:
        query = db.query(Booking).filter(Booking.workspace_id == workspace_id)

        if status:
            query = query.filter(Booking.status == status)

        if booking_date:
            query = query.filter(Booking.booking_date == booking_date)

        if start_date and end_date:
            query = query.filter(Booking.booking_date >= start_date, Booking.booking_date <= end_date)

        return query.order_by(Booking.booking_date.asc(), Booking.start_time.asc()).all()

    @staticmethod
    def count_bookings_by_status(
        db: Session,
        workspace_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> dict[str, int]:
        query = db.query(Booking.status, func.count(Booking.id)).filter(
            Booking.workspace_id == workspace_id
        )
        if start_date and end_date:
            query = query.filter(Booking.booking_date >= start_date, Booking.booking_date <= end_date)
        return {status: count for status, count in query.group_by(Booking.status).all()}

    @staticmethod
    def add_booking(db: Session, **booking_data) -> Booking:
        """Stage a new booking and flush to obtain its id (caller commits)"""
        booking = Booking(**booking_data)
        db.add(booking)
        db.flush()
        return booking

    # Contact / Conversation Methods
    @staticmethod
    def find_or_create_contact(
        db: Session, workspace_id: int, name: str, email: str, phone: Optional[str] = None
    ) -> Contact:
        contact = (
            db.query(Contact)
            .filter(Contact.workspace_id == workspace_id, Contact.email == email)
            .first()
        )
        if contact is None:
            contact = Contact(
                workspace_id=workspace_id,
                name=name,
                email=email,
                phone=phone,
                source="booking",
                status="booked",
            )
            db.add(contact)
            db.flush()
        else:
            contact.status = "booked"
            if phone and not contact.phone:
                contact.phone = phone
        return contact

    @staticmethod
    def get_conversation(db: Session, workspace_id: int, contact_id: int) -> Optional[Conversation]:
        return (
            db.query(Conversation)
            .filter(Conversation.workspace_id == workspace_id, Conversation.contact_id == contact_id)
            .first()
        )

    @staticmethod
    def find_or_create_conversation(db: Session, workspace_id: int, contact_id: int) -> Conversation:
        conversation = SchedulingRepository.get_conversation(db, workspace_id, contact_id)
        if conversation is None:
            conversation = Conversation(workspace_id=workspace_id, contact_id=contact_id, status="open")
            db.add(conversation)
            db.flush()
        return conversation

    @staticmethod
    def add_message(
        db: Session,
        conversation: Conversation,
        direction: str,
        channel: str,
        content: str,
        is_automated: bool = False,
        status: str = "sent",
    ) -> Message:
        message = Message(
            workspace_id=conversation.workspace_id,
            conversation_id=conversation.id,
            contact_id=conversation.contact_id,
            direction=direction,
            channel=channel,
            content=content,
            is_automated=is_automated,
            status=status,
        )
        db.add(message)
        if direction == "outbound":
            conversation.last_message_at = datetime.now()
        return message

    # Form Methods
    @staticmethod
    def get_active_form_templates_for_service(
        db: Session, workspace_id: int, service_type_id: int
    ) -> list[FormTemplate]:
        templates = (
            db.query(FormTemplate)
            .filter(FormTemplate.workspace_id == workspace_id, FormTemplate.is_active.is_(True))
            .order_by(FormTemplate.id.asc())
            .all()
        )
        # service_type_ids is a JSON list; filter in Python to stay portable across backends
        return [t for t in templates if service_type_id in (t.service_type_ids or [])]

    @staticmethod
    def add_form_submission(db: Session, **submission_data) -> FormSubmission:
        submission = FormSubmission(**submission_data)
        db.add(submission)
        db.flush()
        return submission

    @staticmethod
    def get_form_submission(db: Session, submission_id: int) -> Optional[FormSubmission]:
        return db.query(FormSubmission).filter(FormSubmission.id == submission_id).first()
