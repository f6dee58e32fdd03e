"""
Automation cycle
One pass over every active workspace: marks overdue forms, sends booking
reminders and form reminders. Each send is claimed with a conditional update
before dispatch so two overlapping passes never deliver the same reminder twice.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import FRONTEND_URL
from ..database import SessionLocal
from ..domain.scheduling.repository import SchedulingRepository
from ..exceptions import BookingCoreError, ConfigurationError, DataStoreError, DispatchFailure
from ..models import Booking, FormSubmission, Integration, Workspace
from .notification_service import (
    BOOKING_REMINDER,
    FORM_REMINDER,
    NotificationDispatcher,
    dispatch,
    get_dispatcher,
)
from .ops_log_service import log_integration_failure, log_ops_event
from .reminder_policy import (
    REMINDABLE_FORM_STATUSES,
    AutomationConfig,
    ReminderEligibilityPolicy,
    is_contactable,
)

logger = logging.getLogger(__name__)


@dataclass
class CycleSummary:
    forms_marked_overdue: int = 0
    booking_reminders_sent: int = 0
    form_reminders_sent: int = 0
    failures: int = 0
    workspaces_processed: int = 0
    workspaces_failed: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def mark_overdue_forms(db: Session, now: datetime) -> int:
    """Flip pending forms whose due time has passed to overdue. Idempotent."""
    updated = (
        db.query(FormSubmission)
        .filter(FormSubmission.status == "pending", FormSubmission.due_at < now)
        .update({FormSubmission.status: "overdue"}, synchronize_session=False)
    )
    db.commit()
    return updated


def form_link(submission: FormSubmission) -> str:
    return f"{FRONTEND_URL}/forms/{submission.public_id}"


class AutomationCycle:
    """Runs one automation pass; safe to call from the API scheduler or the ARQ worker"""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        dispatcher: Optional[NotificationDispatcher] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.session_factory = session_factory
        self.dispatcher = dispatcher or get_dispatcher()
        self.clock = clock

    async def run(self, now: Optional[datetime] = None) -> CycleSummary:
        now = now or self.clock()
        summary = CycleSummary()
        db = self.session_factory()

        try:
            try:
                summary.forms_marked_overdue = mark_overdue_forms(db, now)
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"❌ Overdue form sweep failed: {DataStoreError(str(e))}")

            for workspace_id in self._eligible_workspace_ids(db):
                try:
                    await self._process_workspace(db, workspace_id, now, summary)
                    summary.workspaces_processed += 1
                except SQLAlchemyError as e:
                    db.rollback()
                    summary.workspaces_failed += 1
                    error = DataStoreError(f"Workspace {workspace_id}: {e}")
                    logger.error(f"❌ Automation failed for workspace {workspace_id}: {error}")
                except BookingCoreError as e:
                    db.rollback()
                    summary.workspaces_failed += 1
                    logger.error(f"❌ Automation failed for workspace {workspace_id}: {e}")
        finally:
            db.close()

        logger.info(f"📊 Automation cycle summary: {summary.to_dict()}")
        return summary

    def _eligible_workspace_ids(self, db: Session) -> list[int]:
        """Active workspaces with an active email integration"""
        rows = (
            db.query(Workspace.id)
            .join(Integration, Integration.workspace_id == Workspace.id)
            .filter(
                Workspace.is_active.is_(True),
                Integration.type == self.dispatcher.channel,
                Integration.is_active.is_(True),
            )
            .distinct()
            .order_by(Workspace.id.asc())
            .all()
        )
        return [row[0] for row in rows]

    async def _process_workspace(
        self, db: Session, workspace_id: int, now: datetime, summary: CycleSummary
    ) -> None:
        workspace = SchedulingRepository.get_workspace(db, workspace_id)
        if workspace is None:
            return

        policy = ReminderEligibilityPolicy(AutomationConfig.from_workspace_settings(workspace.settings))
        await self._send_booking_reminders(db, workspace, policy, now, summary)
        await self._send_form_reminders(db, workspace, policy, now, summary)

    def _is_paused(self, db: Session, workspace_id: int, contact_id: int) -> bool:
        conversation = SchedulingRepository.get_conversation(db, workspace_id, contact_id)
        return bool(conversation and conversation.automation_paused)

    # Booking reminders

    async def _send_booking_reminders(
        self,
        db: Session,
        workspace: Workspace,
        policy: ReminderEligibilityPolicy,
        now: datetime,
        summary: CycleSummary,
    ) -> None:
        candidates = (
            db.query(Booking)
            .filter(
                Booking.workspace_id == workspace.id,
                Booking.status == "confirmed",
                Booking.reminder_sent.is_(False),
            )
            .order_by(Booking.booking_date.asc(), Booking.start_time.asc())
            .all()
        )

        workspace_id = workspace.id
        for booking in candidates:
            booking_id = booking.id
            contact = booking.contact
            try:
                if not is_contactable(contact) or not policy.booking_timing_due(booking, now):
                    continue
            except ConfigurationError as e:
                summary.failures += 1
                logger.error(f"❌ Skipping booking {booking_id} with malformed time: {e}")
                continue
            if not policy.booking_reminder_due(
                booking, now, contact, paused=self._is_paused(db, workspace_id, contact.id)
            ):
                continue

            # Read everything needed for the send before the claim commits and expires it
            contact_id, target = contact.id, contact.email
            payload = {
                "contactName": contact.name,
                "businessName": workspace.business_name,
                "serviceName": booking.service_type.name if booking.service_type else "Appointment",
                "bookingDate": booking.booking_date.isoformat(),
                "startTime": booking.start_time,
                "endTime": booking.end_time,
            }

            if not self._claim_booking(db, booking_id):
                logger.info(f"ℹ️ Booking {booking_id} reminder already claimed or no longer confirmed, skipping")
                continue

            try:
                await dispatch(self.dispatcher, BOOKING_REMINDER, target, payload)
            except DispatchFailure as e:
                self._release_booking(db, booking_id)
                summary.failures += 1
                logger.warning(f"⚠️ Booking reminder failed for booking {booking_id}: {e}")
                log_integration_failure(db, workspace_id, self.dispatcher.channel, "booking reminder", e.reason)
                continue

            conversation = SchedulingRepository.find_or_create_conversation(db, workspace_id, contact_id)
            SchedulingRepository.add_message(
                db,
                conversation,
                direction="outbound",
                channel=self.dispatcher.channel,
                content=(
                    f"Reminder sent for {payload['serviceName']} on "
                    f"{payload['bookingDate']} at {payload['startTime']}"
                ),
                is_automated=True,
            )
            db.commit()
            summary.booking_reminders_sent += 1
            log_ops_event(
                db,
                workspace_id,
                message=f"Booking reminder sent to {target}",
                source="automation",
                meta={"bookingId": booking_id},
            )

    def _claim_booking(self, db: Session, booking_id: int) -> bool:
        """Set reminder_sent only if still unsent and the booking is still confirmed"""
        claimed = (
            db.query(Booking)
            .filter(
                Booking.id == booking_id,
                Booking.status == "confirmed",
                Booking.reminder_sent.is_(False),
            )
            .update({Booking.reminder_sent: True}, synchronize_session=False)
        )
        db.commit()
        return claimed == 1

    def _release_booking(self, db: Session, booking_id: int) -> None:
        db.query(Booking).filter(Booking.id == booking_id, Booking.reminder_sent.is_(True)).update(
            {Booking.reminder_sent: False}, synchronize_session=False
        )
        db.commit()

    # Form reminders

    async def _send_form_reminders(
        self,
        db: Session,
        workspace: Workspace,
        policy: ReminderEligibilityPolicy,
        now: datetime,
        summary: CycleSummary,
    ) -> None:
        candidates = (
            db.query(FormSubmission)
            .filter(
                FormSubmission.workspace_id == workspace.id,
                FormSubmission.status.in_(REMINDABLE_FORM_STATUSES),
                FormSubmission.due_at <= now,
            )
            .order_by(FormSubmission.due_at.asc())
            .all()
        )

        workspace_id = workspace.id
        for submission in candidates:
            contact = submission.contact
            if not is_contactable(contact) or not policy.form_timing_due(submission, now):
                continue
            if not policy.form_reminder_due(
                submission, now, contact, paused=self._is_paused(db, workspace_id, contact.id)
            ):
                continue

            submission_id = submission.id
            observed_count = submission.reminder_count
            observed_last = submission.last_reminder_at
            contact_id, target = contact.id, contact.email
            form_name = submission.form_template.name if submission.form_template else "Form"
            payload = {
                "contactName": contact.name,
                "businessName": workspace.business_name,
                "formName": form_name,
                "formLink": form_link(submission),
            }

            if not self._claim_form(db, submission_id, observed_count, observed_last, now):
                logger.info(f"ℹ️ Form {submission_id} reminder already claimed or completed, skipping")
                continue

            try:
                await dispatch(self.dispatcher, FORM_REMINDER, target, payload)
            except DispatchFailure as e:
                self._release_form(db, submission_id, observed_count, observed_last, now)
                summary.failures += 1
                logger.warning(f"⚠️ Form reminder failed for submission {submission_id}: {e}")
                log_integration_failure(db, workspace_id, self.dispatcher.channel, "form reminder", e.reason)
                continue

            conversation = SchedulingRepository.find_or_create_conversation(db, workspace_id, contact_id)
            SchedulingRepository.add_message(
                db,
                conversation,
                direction="outbound",
                channel=self.dispatcher.channel,
                content=f"Reminder sent to complete {form_name}",
                is_automated=True,
            )
            db.commit()
            summary.form_reminders_sent += 1
            log_ops_event(
                db,
                workspace_id,
                message=f"Form reminder sent to {target}",
                source="automation",
                meta={"formSubmissionId": submission_id, "reminderCount": observed_count + 1},
            )

    def _claim_form(
        self,
        db: Session,
        submission_id: int,
        observed_count: int,
        observed_last: Optional[datetime],
        now: datetime,
    ) -> bool:
        query = db.query(FormSubmission).filter(
            FormSubmission.id == submission_id,
            FormSubmission.status.in_(REMINDABLE_FORM_STATUSES),
            FormSubmission.reminder_count == observed_count,
        )
        if observed_last is None:
            query = query.filter(FormSubmission.last_reminder_at.is_(None))
        else:
            query = query.filter(FormSubmission.last_reminder_at == observed_last)

        claimed = query.update(
            {
                FormSubmission.reminder_count: observed_count + 1,
                FormSubmission.last_reminder_at: now,
            },
            synchronize_session=False,
        )
        db.commit()
        return claimed == 1

    def _release_form(
        self,
        db: Session,
        submission_id: int,
        observed_count: int,
        observed_last: Optional[datetime],
        now: datetime,
    ) -> None:
        db.query(FormSubmission).filter(
            FormSubmission.id == submission_id,
            FormSubmission.reminder_count == observed_count + 1,
            FormSubmission.last_reminder_at == now,
        ).update(
            {
                FormSubmission.reminder_count: observed_count,
                FormSubmission.last_reminder_at: observed_last,
            },
            synchronize_session=False,
        )
        db.commit()
