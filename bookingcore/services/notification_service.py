"""
Notification dispatch
The automation cycle and booking flows talk to a dispatcher with a single
`send(kind, target, payload)` call. Failures must be observable: a dispatcher
either returns a falsy value or raises, and `dispatch()` turns both into
DispatchFailure.
"""

import logging
from typing import Callable

from .. import email_templates
from ..email_service import get_sender_email, send_email
from ..exceptions import DispatchFailure

logger = logging.getLogger(__name__)

BOOKING_REMINDER = "booking.reminder"
BOOKING_CONFIRMATION = "booking.confirmation"
FORM_REQUEST = "form.request"
FORM_REMINDER = "form.reminder"


class NotificationDispatcher:
    """Interface for notification channels"""

    channel = "email"

    async def send(self, kind: str, target: str, payload: dict) -> bool:
        raise NotImplementedError


def _booking_subject(prefix: str) -> Callable[[dict], str]:
    return lambda p: f"{prefix}: {p['serviceName']} on {p['bookingDate']} at {p['startTime']}"


# kind -> (subject builder, template builder)
EMAIL_KINDS: dict[str, tuple[Callable[[dict], str], Callable[[dict], str]]] = {
    BOOKING_REMINDER: (
        _booking_subject("Reminder"),
        lambda p: email_templates.booking_reminder_template(
            contact_name=p["contactName"],
            business_name=p["businessName"],
            service_name=p["serviceName"],
            booking_date=p["bookingDate"],
            start_time=p["startTime"],
            end_time=p["endTime"],
        ),
    ),
    BOOKING_CONFIRMATION: (
        _booking_subject("Booking confirmed"),
        lambda p: email_templates.booking_confirmation_template(
            contact_name=p["contactName"],
            business_name=p["businessName"],
            service_name=p["serviceName"],
            booking_date=p["bookingDate"],
            start_time=p["startTime"],
            end_time=p["endTime"],
        ),
    ),
    FORM_REQUEST: (
        lambda p: f"Please complete: {p['formName']} - {p['businessName']}",
        lambda p: email_templates.form_request_template(
            contact_name=p["contactName"],
            business_name=p["businessName"],
            form_name=p["formName"],
            form_link=p["formLink"],
        ),
    ),
    FORM_REMINDER: (
        lambda p: f"Reminder: complete your form - {p['businessName']}",
        lambda p: email_templates.form_reminder_template(
            contact_name=p["contactName"],
            business_name=p["businessName"],
            form_name=p["formName"],
            form_link=p["formLink"],
        ),
    ),
}


class EmailDispatcher(NotificationDispatcher):
    """Renders MJML templates and sends them through the email service"""

    channel = "email"

    async def send(self, kind: str, target: str, payload: dict) -> bool:
        if kind not in EMAIL_KINDS:
            raise DispatchFailure(kind, target, "unsupported notification kind")

        build_subject, build_template = EMAIL_KINDS[kind]
        await send_email(
            to=target,
            subject=build_subject(payload),
            mjml_content=build_template(payload),
            from_address=get_sender_email(payload.get("businessName")),
        )
        return True


async def dispatch(dispatcher: NotificationDispatcher, kind: str, target: str, payload: dict) -> None:
    """
    Send through `dispatcher` and confirm the result.

    Raises:
        DispatchFailure: If the dispatcher raised or reported failure
    """
    try:
        ok = await dispatcher.send(kind, target, payload)
    except DispatchFailure:
        raise
    except Exception as e:
        raise DispatchFailure(kind, target, str(e)) from e

    if not ok:
        raise DispatchFailure(kind, target, "dispatcher reported failure")
    logger.info(f"✅ Dispatched {kind} to {target}")


def get_dispatcher() -> NotificationDispatcher:
    """Dependency injection for the notification dispatcher"""
    return EmailDispatcher()
