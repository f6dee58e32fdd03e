"""Scheduling service - Business logic for bookings, availability and forms"""

import logging
import threading
import uuid
from contextlib import ExitStack, contextmanager
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ...config import FRONTEND_URL, PLACEHOLDER_EMAIL_DOMAIN
from ...exceptions import ConflictError, DispatchFailure, NotFoundError
from ...models import LEDGER_STATUSES, Availability, Booking, FormSubmission, ServiceType, Workspace
from ...services.integration_guard import has_active_integration
from ...services.notification_service import (
    BOOKING_CONFIRMATION,
    FORM_REQUEST,
    NotificationDispatcher,
    dispatch,
)
from ...services.ops_log_service import log_integration_failure, log_ops_event
from ...services.reminder_policy import is_contactable
from .availability_service import Slot, SlotAvailabilityEngine
from .repository import SchedulingRepository
from .schemas import (
    BatchAvailabilityUpdate,
    BookingCheckRequest,
    PublicBookingCreate,
    RescheduleRequest,
)
from .time_calculator import add_minutes

logger = logging.getLogger(__name__)

SLOT_TAKEN_MESSAGE = "This time slot is no longer available"


class _LedgerLockEntry:
    __slots__ = ("lock", "holders")

    def __init__(self):
        self.lock = threading.Lock()
        self.holders = 0


# (workspace_id, booking_date) -> lock guarding check-then-write on that day's ledger.
# An entry lives only while some caller holds or waits on it.
_ledger_locks: dict[tuple[int, date], _LedgerLockEntry] = {}
_ledger_locks_guard = threading.Lock()


@contextmanager
def ledger_lock(workspace_id: int, booking_date: date):
    key = (workspace_id, booking_date)
    with _ledger_locks_guard:
        entry = _ledger_locks.get(key)
        if entry is None:
            entry = _ledger_locks[key] = _LedgerLockEntry()
        entry.holders += 1

    try:
        with entry.lock:
            yield
    finally:
        with _ledger_locks_guard:
            entry.holders -= 1
            if entry.holders == 0:
                del _ledger_locks[key]


def placeholder_email() -> str:
    return f"booking-{uuid.uuid4().hex[:12]}@{PLACEHOLDER_EMAIL_DOMAIN}"


class BookingService:
    """Service layer for booking business logic"""

    def __init__(
        self,
        db: Session,
        dispatcher: Optional[NotificationDispatcher] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.db = db
        self.repo = SchedulingRepository()
        self.engine = SlotAvailabilityEngine(db)
        self.dispatcher = dispatcher
        self.clock = clock

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_workspace(self, workspace_id: int) -> Workspace:
        workspace = self.repo.get_workspace(self.db, workspace_id)
        if not workspace:
            raise NotFoundError("Workspace not found")
        return workspace

    def get_workspace_by_slug(self, slug: str) -> Workspace:
        workspace = self.repo.get_active_workspace_by_slug(self.db, slug)
        if not workspace:
            raise NotFoundError("Workspace not found")
        return workspace

    def get_booking(self, booking_id: int) -> Booking:
        booking = self.repo.get_booking(self.db, booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        return booking

    # ------------------------------------------------------------------
    # Slots and validation
    # ------------------------------------------------------------------

    def get_available_slots(
        self, workspace_slug: str, service_type_id: int, booking_date: date
    ) -> tuple[ServiceType, list[Slot]]:
        """Slot query by workspace slug; returns the service alongside its slots"""
        workspace = self.get_workspace_by_slug(workspace_slug)
        slots = self.engine.get_available_slots(workspace.id, booking_date, service_type_id)
        return self.repo.get_service_type(self.db, service_type_id, workspace.id), slots

    def check_availability(self, data: BookingCheckRequest) -> bool:
        self.get_workspace(data.workspaceId)
        return self.engine.is_slot_available(
            data.workspaceId,
            data.bookingDate,
            data.startTime,
            data.endTime,
            exclude_booking_id=data.excludeBookingId,
        )

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_public_booking(self, data: PublicBookingCreate) -> Booking:
        """
        Create a confirmed booking from the public booking page.

        The ledger check and insert run under the (workspace, date) lock; the
        confirmation and form requests are sent after commit.

        Raises:
            NotFoundError: Unknown workspace or inactive service
            ConflictError: The interval overlaps an existing booking
        """
        workspace = self.get_workspace_by_slug(data.workspaceSlug)
        service_type = self.repo.get_service_type(self.db, data.serviceTypeId, workspace.id)
        if not service_type or not service_type.is_active:
            raise NotFoundError("Service type not found")

        end_time = add_minutes(data.startTime, service_type.duration_minutes)
        logger.info(
            f"📥 Booking request for workspace {workspace.id}: "
            f"{data.bookingDate} {data.startTime}-{end_time}"
        )

        with ledger_lock(workspace.id, data.bookingDate):
            try:
                self.repo.lock_workspace(self.db, workspace.id)
                if not self.engine.is_slot_available(workspace.id, data.bookingDate, data.startTime, end_time):
                    logger.info(f"ℹ️ Slot {data.bookingDate} {data.startTime} taken for workspace {workspace.id}")
                    raise ConflictError(SLOT_TAKEN_MESSAGE)

                contact = self.repo.find_or_create_contact(
                    self.db,
                    workspace.id,
                    name=data.contactInfo.name,
                    email=data.contactInfo.email or placeholder_email(),
                    phone=data.contactInfo.phone,
                )
                booking = self.repo.add_booking(
                    self.db,
                    workspace_id=workspace.id,
                    contact_id=contact.id,
                    service_type_id=service_type.id,
                    booking_date=data.bookingDate,
                    start_time=data.startTime,
                    end_time=end_time,
                    status="confirmed",
                    notes=data.notes,
                )
                conversation = self.repo.find_or_create_conversation(self.db, workspace.id, contact.id)
                self.repo.add_message(
                    self.db,
                    conversation,
                    direction="inbound",
                    channel="system",
                    content=f"Booked {service_type.name} on {data.bookingDate.isoformat()} at {data.startTime}",
                )
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        logger.info(f"✅ Booking {booking.id} created for workspace {workspace.id}")
        log_ops_event(
            self.db,
            workspace.id,
            message=f"New booking: {service_type.name} on {data.bookingDate.isoformat()} at {data.startTime}",
            source="booking",
            meta={"bookingId": booking.id},
        )

        await self._send_confirmation(workspace, booking)
        await self._send_post_booking_forms(workspace, booking)
        self.db.refresh(booking)
        return booking

    def _can_notify(self, workspace: Workspace, action: str) -> bool:
        if self.dispatcher is None:
            return False
        if has_active_integration(self.db, workspace.id, self.dispatcher.channel):
            return True
        log_integration_failure(self.db, workspace.id, self.dispatcher.channel, action, "No active integration")
        return False

    async def _send_confirmation(self, workspace: Workspace, booking: Booking) -> None:
        contact = booking.contact
        if not is_contactable(contact):
            logger.info(f"ℹ️ Booking {booking.id} has no contact email, skipping confirmation")
            return
        if not self._can_notify(workspace, "booking confirmation"):
            return

        payload = {
            "contactName": contact.name,
            "businessName": workspace.business_name,
            "serviceName": booking.service_type.name,
            "bookingDate": booking.booking_date.isoformat(),
            "startTime": booking.start_time,
            "endTime": booking.end_time,
        }
        try:
            await dispatch(self.dispatcher, BOOKING_CONFIRMATION, contact.email, payload)
        except DispatchFailure as e:
            logger.warning(f"⚠️ Confirmation for booking {booking.id} failed: {e}")
            log_integration_failure(self.db, workspace.id, self.dispatcher.channel, "booking confirmation", e.reason)
            return

        conversation = self.repo.find_or_create_conversation(self.db, workspace.id, contact.id)
        self.repo.add_message(
            self.db,
            conversation,
            direction="outbound",
            channel=self.dispatcher.channel,
            content=f"Booking confirmation sent for {payload['serviceName']}",
            is_automated=True,
        )
        self.db.commit()

    async def _send_post_booking_forms(self, workspace: Workspace, booking: Booking) -> None:
        templates = self.repo.get_active_form_templates_for_service(
            self.db, workspace.id, booking.service_type_id
        )
        if not templates:
            return

        now = self.clock()
        submissions = [
            self.repo.add_form_submission(
                self.db,
                workspace_id=workspace.id,
                form_template_id=template.id,
                booking_id=booking.id,
                contact_id=booking.contact_id,
                status="pending",
                sent_at=now,
                due_at=now + timedelta(hours=template.due_in_hours),
            )
            for template in templates
        ]
        booking.forms_sent = True
        self.db.commit()
        logger.info(f"📝 Created {len(submissions)} form(s) for booking {booking.id}")

        contact = booking.contact
        if not is_contactable(contact) or not self._can_notify(workspace, "form request"):
            return

        for submission in submissions:
            form_name = submission.form_template.name
            payload = {
                "contactName": contact.name,
                "businessName": workspace.business_name,
                "formName": form_name,
                "formLink": f"{FRONTEND_URL}/forms/{submission.public_id}",
            }
            try:
                await dispatch(self.dispatcher, FORM_REQUEST, contact.email, payload)
            except DispatchFailure as e:
                logger.warning(f"⚠️ Form request {submission.id} failed: {e}")
                log_integration_failure(self.db, workspace.id, self.dispatcher.channel, "form request", e.reason)
                continue

            conversation = self.repo.find_or_create_conversation(self.db, workspace.id, contact.id)
            self.repo.add_message(
                self.db,
                conversation,
                direction="outbound",
                channel=self.dispatcher.channel,
                content=f"Form request sent: {form_name}",
                is_automated=True,
            )
            self.db.commit()

    # ------------------------------------------------------------------
    # Changes to existing bookings
    # ------------------------------------------------------------------

    def reschedule_booking(self, booking_id: int, data: RescheduleRequest) -> Booking:
        """
        Move a confirmed booking; the booking's own interval is excluded from the check.

        reminder_sent is reset only when the interval actually moves.
        """
        booking = self.get_booking(booking_id)
        if booking.status != "confirmed":
            raise ConflictError(f"Cannot reschedule a {booking.status} booking")

        end_time = add_minutes(data.startTime, booking.service_type.duration_minutes)
        workspace_id = booking.workspace_id
        lock_keys = sorted({booking.booking_date, data.bookingDate})

        with ExitStack() as stack:
            for day in lock_keys:
                stack.enter_context(ledger_lock(workspace_id, day))
            try:
                self.repo.lock_workspace(self.db, workspace_id)
                if not self.engine.is_slot_available(
                    workspace_id, data.bookingDate, data.startTime, end_time, exclude_booking_id=booking.id
                ):
                    raise ConflictError(SLOT_TAKEN_MESSAGE)

                moved = (booking.booking_date, booking.start_time, booking.end_time) != (
                    data.bookingDate,
                    data.startTime,
                    end_time,
                )
                old_label = f"{booking.booking_date.isoformat()} {booking.start_time}"
                booking.booking_date = data.bookingDate
                booking.start_time = data.startTime
                booking.end_time = end_time
                if moved:
                    booking.reminder_sent = False
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        if moved:
            logger.info(f"🔄 Booking {booking.id} rescheduled from {old_label} to {data.bookingDate} {data.startTime}")
            log_ops_event(
                self.db,
                workspace_id,
                message=f"Booking rescheduled to {data.bookingDate.isoformat()} at {data.startTime}",
                source="booking",
                meta={"bookingId": booking.id, "from": old_label},
            )
        self.db.refresh(booking)
        return booking

    def update_status(self, booking_id: int, status: str) -> Booking:
        """Staff status change; re-entering the ledger is checked for conflicts"""
        booking = self.get_booking(booking_id)
        if booking.status == status:
            return booking

        previous = booking.status
        with ledger_lock(booking.workspace_id, booking.booking_date):
            try:
                if status in LEDGER_STATUSES and previous not in LEDGER_STATUSES:
                    self.repo.lock_workspace(self.db, booking.workspace_id)
                    if not self.engine.is_slot_available(
                        booking.workspace_id,
                        booking.booking_date,
                        booking.start_time,
                        booking.end_time,
                        exclude_booking_id=booking.id,
                    ):
                        raise ConflictError(SLOT_TAKEN_MESSAGE)
                booking.status = status
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        logger.info(f"✅ Booking {booking.id} status: {previous} → {status}")
        log_ops_event(
            self.db,
            booking.workspace_id,
            message=f"Booking status changed from {previous} to {status}",
            source="booking",
            meta={"bookingId": booking.id},
        )
        self.db.refresh(booking)
        return booking

    def cancel_booking(self, booking_id: int) -> dict:
        self.update_status(booking_id, "cancelled")
        return {"message": "Booking cancelled"}

    def list_bookings(
        self,
        workspace_id: int,
        status: Optional[str] = None,
        booking_date: Optional[date] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[Booking]:
        self.get_workspace(workspace_id)
        return self.repo.list_bookings(self.db, workspace_id, status, booking_date, start_date, end_date)

    def get_stats(
        self, workspace_id: int, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> dict:
        self.get_workspace(workspace_id)
        counts = self.repo.count_bookings_by_status(self.db, workspace_id, start_date, end_date)
        return {
            "total": sum(counts.values()),
            "confirmed": counts.get("confirmed", 0),
            "completed": counts.get("completed", 0),
            "cancelled": counts.get("cancelled", 0),
            "noShow": counts.get("no-show", 0),
        }

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    def get_availability(self, workspace_id: int) -> list[Availability]:
        self.get_workspace(workspace_id)
        return self.repo.list_availability(self.db, workspace_id)

    def set_availability(self, workspace_id: int, data: BatchAvailabilityUpdate) -> list[Availability]:
        """Replace the open hours for each weekday in the batch; other weekdays are untouched"""
        self.get_workspace(workspace_id)
        for day in data.availability:
            self.repo.upsert_availability(
                self.db,
                workspace_id,
                day.dayOfWeek,
                is_available=day.isAvailable,
                time_slots=[slot.model_dump() for slot in day.timeSlots],
                slot_duration_minutes=day.slotDurationMinutes,
            )
        self.db.commit()
        logger.info(f"✅ Availability updated for workspace {workspace_id} ({len(data.availability)} day(s))")
        return self.repo.list_availability(self.db, workspace_id)

    # ------------------------------------------------------------------
    # Forms
    # ------------------------------------------------------------------

    def complete_form(self, submission_id: int, answers: dict) -> FormSubmission:
        """Mark a form as completed; completed forms are never reminded again"""
        submission = self.repo.get_form_submission(self.db, submission_id)
        if not submission:
            raise NotFoundError("Form submission not found")
        if submission.status == "completed":
            return submission

        submission.status = "completed"
        submission.answers = answers
        submission.completed_at = self.clock()
        self.db.commit()
        logger.info(f"✅ Form submission {submission.id} completed")
        log_ops_event(
            self.db,
            submission.workspace_id,
            message=f"Form completed: {submission.form_template.name}",
            source="forms",
            meta={"formSubmissionId": submission.id},
        )
        self.db.refresh(submission)
        return submission
