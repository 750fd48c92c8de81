"""Scheduling router - FastAPI endpoints for slots, bookings and hosts"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.orm import Session

from ...database import get_db
from ...models import Booking, Slot
from ...services import Integrations
from .booking_service import BookingService, VolunteerInfo
from .calendar_export import booking_to_ics, ics_filename
from .cancellation import CancellationWorkflow
from .errors import AlreadyCancelled
from .schemas import (
    BookingCancel,
    BookingCreate,
    BookingCreated,
    BookingResponse,
    CancelResponse,
    HostReassign,
    SideEffectAttemptResponse,
    SlotResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Scheduling"])


def get_integrations(request: Request) -> Integrations:
    """Collaborators built once in the application lifespan"""
    return getattr(request.app.state, "integrations", None) or Integrations()


def get_booking_service(
    db: Session = Depends(get_db), integrations: Integrations = Depends(get_integrations)
) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db, integrations)


def get_cancellation_workflow(
    db: Session = Depends(get_db), integrations: Integrations = Depends(get_integrations)
) -> CancellationWorkflow:
    return CancellationWorkflow(db, integrations)


def booking_to_response(booking: Booking) -> BookingResponse:
    slot = booking.slot
    return BookingResponse(
        id=booking.id,
        slotId=booking.slot_id,
        companyId=booking.company_id,
        companyName=booking.company.name if booking.company else None,
        serviceTypeId=booking.service_type_id,
        serviceName=booking.service_type.name if booking.service_type else None,
        slotDate=slot.date if slot else None,
        startTime=slot.start_time if slot else None,
        endTime=slot.end_time if slot else None,
        volunteerName=booking.volunteer_name,
        volunteerEmail=booking.volunteer_email,
        volunteerPhone=booking.volunteer_phone,
        office=booking.office,
        hostEmail=booking.host_email,
        googleEventId=booking.google_event_id,
        meetLink=booking.meet_link,
        status=booking.status,
        cancelledAt=booking.cancelled_at,
        cancellationReason=booking.cancellation_reason,
        created_at=booking.created_at,
    )


def slot_to_response(slot: Slot) -> SlotResponse:
    return SlotResponse(
        id=slot.id,
        companyId=slot.company_id,
        companyName=slot.company.name if slot.company else None,
        serviceTypeId=slot.service_type_id,
        serviceName=slot.service_type.name if slot.service_type else None,
        modality=slot.service_type.modality if slot.service_type else None,
        slotDate=slot.date,
        startTime=slot.start_time,
        endTime=slot.end_time,
        maxVolunteers=slot.max_volunteers,
        currentVolunteers=slot.current_volunteers,
        remaining=slot.remaining,
    )


# ============================================================================
# BOOKINGS
# ============================================================================


@router.post("/bookings", response_model=BookingCreated, status_code=201)
async def create_booking(data: BookingCreate, service: BookingService = Depends(get_booking_service)):
    """Book a slot for a volunteer"""
    booking = await service.create_booking(
        data.slotId,
        VolunteerInfo(
            name=data.volunteerName,
            email=data.volunteerEmail,
            phone=data.volunteerPhone,
            office=data.office,
        ),
    )
    return BookingCreated(
        bookingId=booking.id,
        status=booking.status,
        hostEmail=booking.host_email,
        meetLink=booking.meet_link,
    )


@router.post("/bookings/{booking_id}/cancel", response_model=CancelResponse, response_model_exclude_none=True)
async def cancel_booking(
    booking_id: int,
    data: Optional[BookingCancel] = None,
    workflow: CancellationWorkflow = Depends(get_cancellation_workflow),
):
    """Cancel a booking; cancelling twice is reported, not an error"""
    try:
        await workflow.cancel_booking(booking_id, data.reason if data else None)
    except AlreadyCancelled as e:
        logger.info(f"ℹ️ Booking {booking_id} was already cancelled")
        return CancelResponse(status="cancelled", kind=e.kind)
    return CancelResponse(status="cancelled")


@router.get("/bookings", response_model=list[BookingResponse])
async def list_bookings(
    status: Optional[str] = Query(None),
    service: BookingService = Depends(get_booking_service),
):
    return [booking_to_response(b) for b in service.list_bookings(status)]


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
async def get_booking(booking_id: int, service: BookingService = Depends(get_booking_service)):
    return booking_to_response(service.get_booking(booking_id))


@router.get("/bookings/{booking_id}/side-effects", response_model=list[SideEffectAttemptResponse])
async def get_booking_side_effects(booking_id: int, service: BookingService = Depends(get_booking_service)):
    """Recorded calendar, email and CRM attempts for a booking"""
    return [
        SideEffectAttemptResponse(
            id=a.id,
            effectType=a.effect_type,
            target=a.target,
            status=a.status,
            error=a.error,
            attempts=a.attempts,
            nextAttemptAt=a.next_attempt_at,
            payload=a.payload,
            created_at=a.created_at,
        )
        for a in service.side_effect_attempts(booking_id)
    ]


@router.get("/bookings/{booking_id}/calendar.ics")
async def export_booking_calendar(booking_id: int, service: BookingService = Depends(get_booking_service)):
    """Download the booking as an .ics file"""
    booking = service.get_booking(booking_id)
    return Response(
        content=booking_to_ics(booking),
        media_type="text/calendar",
        headers={"Content-Disposition": f"attachment; filename={ics_filename(booking)}"},
    )


@router.post("/bookings/{booking_id}/host", response_model=BookingResponse)
async def reassign_host(
    booking_id: int,
    data: HostReassign,
    service: BookingService = Depends(get_booking_service),
):
    booking = await service.reassign_host(booking_id, data.newHostEmail)
    return booking_to_response(booking)


# ============================================================================
# SLOTS & HOSTS
# ============================================================================


@router.get("/slots", response_model=list[SlotResponse])
async def get_available_slots(
    companyId: Optional[int] = Query(None),
    serviceTypeId: Optional[int] = Query(None),
    fromDate: Optional[date] = Query(None),
    service: BookingService = Depends(get_booking_service),
):
    """Active slots with free places"""
    slots = service.ledger.available_slots(companyId, serviceTypeId, fromDate)
    return [slot_to_response(s) for s in slots]


@router.get("/hosts", response_model=list[str])
async def get_hosts(service: BookingService = Depends(get_booking_service)):
    """Team members that can host sessions"""
    return service.host_policy.team_members()
