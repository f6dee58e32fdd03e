"""Scheduling router - FastAPI endpoints for slots, bookings, availability and forms"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db
from ...services.notification_service import NotificationDispatcher, get_dispatcher
from .schemas import (
    AvailabilityResponse,
    AvailableSlotsResponse,
    BatchAvailabilityUpdate,
    BookingCheckRequest,
    BookingCheckResponse,
    BookingResponse,
    BookingStats,
    FormCompleteRequest,
    FormSubmissionResponse,
    PublicBookingCreate,
    RescheduleRequest,
    SlotResponse,
    StatusUpdate,
)
from .service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def get_booking_service(
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db, dispatcher=dispatcher)


def _availability_response(availability) -> AvailabilityResponse:
    return AvailabilityResponse(
        id=availability.id,
        dayOfWeek=availability.day_of_week,
        isAvailable=availability.is_available,
        timeSlots=availability.time_slots or [],
        slotDurationMinutes=availability.slot_duration_minutes,
    )


# ============================================================================
# PUBLIC ENDPOINTS
# ============================================================================


@router.get("/available-slots", response_model=AvailableSlotsResponse)
async def get_available_slots(
    workspaceSlug: str = Query(...),
    serviceTypeId: int = Query(...),
    booking_date: date = Query(..., alias="date"),
    service: BookingService = Depends(get_booking_service),
):
    """Bookable slots for a service on one day"""
    service_type, slots = service.get_available_slots(workspaceSlug, serviceTypeId, booking_date)
    return AvailableSlotsResponse(
        bookingDate=booking_date,
        serviceTypeId=serviceTypeId,
        durationMinutes=service_type.duration_minutes,
        slots=[SlotResponse(**slot.to_dict()) for slot in slots],
    )


@router.post("/public", response_model=BookingResponse, status_code=201)
async def create_public_booking(
    data: PublicBookingCreate,
    service: BookingService = Depends(get_booking_service),
):
    """Create a booking from the public booking page"""
    booking = await service.create_public_booking(data)
    return BookingResponse.from_booking(booking)


@router.post("/check", response_model=BookingCheckResponse)
async def check_booking_availability(
    data: BookingCheckRequest,
    service: BookingService = Depends(get_booking_service),
):
    """Validate an interval against the ledger"""
    return BookingCheckResponse(available=service.check_availability(data))


@router.post("/forms/{submission_id}/complete", response_model=FormSubmissionResponse)
async def complete_form(
    submission_id: int,
    data: FormCompleteRequest,
    service: BookingService = Depends(get_booking_service),
):
    submission = service.complete_form(submission_id, data.answers)
    return FormSubmissionResponse(
        id=submission.id,
        public_id=submission.public_id,
        status=submission.status,
        dueAt=submission.due_at,
        completedAt=submission.completed_at,
        reminderCount=submission.reminder_count,
    )


# ============================================================================
# AVAILABILITY
# ============================================================================


@router.get("/availability/{workspace_id}", response_model=list[AvailabilityResponse])
async def get_availability(
    workspace_id: int,
    service: BookingService = Depends(get_booking_service),
):
    """Weekly open hours for a workspace"""
    return [_availability_response(a) for a in service.get_availability(workspace_id)]


@router.put("/availability/{workspace_id}", response_model=list[AvailabilityResponse])
async def set_availability(
    workspace_id: int,
    data: BatchAvailabilityUpdate,
    service: BookingService = Depends(get_booking_service),
):
    """Replace open hours for the weekdays in the request"""
    return [_availability_response(a) for a in service.set_availability(workspace_id, data)]


# ============================================================================
# WORKSPACE BOOKINGS
# ============================================================================


@router.get("/workspace/{workspace_id}", response_model=list[BookingResponse])
async def list_bookings(
    workspace_id: int,
    status: Optional[str] = Query(None),
    booking_date: Optional[date] = Query(None, alias="date"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    service: BookingService = Depends(get_booking_service),
):
    bookings = service.list_bookings(workspace_id, status, booking_date, start_date, end_date)
    return [BookingResponse.from_booking(b) for b in bookings]


@router.get("/workspace/{workspace_id}/stats", response_model=BookingStats)
async def get_booking_stats(
    workspace_id: int,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    service: BookingService = Depends(get_booking_service),
):
    """Booking counts by status"""
    return BookingStats(**service.get_stats(workspace_id, start_date, end_date))


# ============================================================================
# SINGLE BOOKING
# ============================================================================


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: int,
    service: BookingService = Depends(get_booking_service),
):
    return BookingResponse.from_booking(service.get_booking(booking_id))


@router.put("/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    booking_id: int,
    data: StatusUpdate,
    service: BookingService = Depends(get_booking_service),
):
    """Staff status change (confirmed, completed, no-show, cancelled)"""
    return BookingResponse.from_booking(service.update_status(booking_id, data.status))


@router.put("/{booking_id}/reschedule", response_model=BookingResponse)
async def reschedule_booking(
    booking_id: int,
    data: RescheduleRequest,
    service: BookingService = Depends(get_booking_service),
):
    """Move a booking to a new date/time"""
    return BookingResponse.from_booking(service.reschedule_booking(booking_id, data))


@router.delete("/{booking_id}")
async def cancel_booking(
    booking_id: int,
    service: BookingService = Depends(get_booking_service),
):
    return service.cancel_booking(booking_id)
