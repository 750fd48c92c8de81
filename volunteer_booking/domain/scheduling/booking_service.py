"""
Booking Service
Creates bookings: validate, reserve capacity, assign a host, persist, then run
the side effects. A booking exists as soon as it is persisted; side effect
failures are recorded and never undo it.
"""

import logging
import unicodedata
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from ... import config
from ...models import BOOKING_CONFIRMED, Booking, ServiceType, Slot
from ...services import Integrations
from ...services import notification_service as notifications
from ...shared.validators import validate_email, validate_phone
from . import side_effects
from .errors import (
    AlreadyCancelled,
    BookingNotFound,
    DuplicateBooking,
    NoHostsAvailable,
    SlotNotFound,
    ValidationError,
)
from .host_assignment import HostAssignmentPolicy
from .repository import BookingRepository
from .side_effects import SideEffectOrchestrator
from .slot_ledger import SlotLedger

logger = logging.getLogger(__name__)


@dataclass
class VolunteerInfo:
    name: str
    email: str
    phone: Optional[str] = None
    office: Optional[str] = None


def _fold(value: str) -> str:
    # "malaga" matches "Málaga"
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).casefold().strip()


def match_office(office: Optional[str], offices: Optional[list[str]] = None) -> Optional[str]:
    """Canonical office name, or None when it is not one of ours"""
    if not office:
        return None
    for candidate in offices if offices is not None else config.OFFICES:
        if _fold(candidate) == _fold(office):
            return candidate
    return None


class BookingService:
    """Service layer for booking creation and host changes"""

    def __init__(
        self,
        db: Session,
        integrations: Optional[Integrations] = None,
        ledger: Optional[SlotLedger] = None,
        host_policy: Optional[HostAssignmentPolicy] = None,
        orchestrator: Optional[SideEffectOrchestrator] = None,
    ):
        self.db = db
        self.repo = BookingRepository()
        self.ledger = ledger or SlotLedger(db)
        self.host_policy = host_policy or HostAssignmentPolicy(db)
        self.orchestrator = orchestrator or SideEffectOrchestrator(db, integrations or Integrations())

    def validate_volunteer(self, volunteer: VolunteerInfo, service: ServiceType) -> VolunteerInfo:
        """Normalized copy of the volunteer details, raises ValidationError"""
        name = (volunteer.name or "").strip()
        if not name:
            raise ValidationError("Volunteer name is required")
        if not volunteer.email or not volunteer.email.strip():
            raise ValidationError("Volunteer email is required")

        try:
            email = validate_email(volunteer.email)
            phone = validate_phone(volunteer.phone)
        except ValueError as e:
            raise ValidationError(str(e))

        office = None
        if not service.is_virtual:
            if not volunteer.office:
                raise ValidationError(f"An office is required for {service.name} sessions")
            office = match_office(volunteer.office)
            if office is None:
                raise ValidationError(
                    f"Unknown office '{volunteer.office}'. Choose one of: {', '.join(config.OFFICES)}"
                )

        return VolunteerInfo(name=name, email=email, phone=phone, office=office)

    def check_duplicate(self, email: str, slot: Slot) -> None:
        existing = self.repo.find_confirmed_near(
            self.db, email, slot.date, config.DUPLICATE_BOOKING_WINDOW_DAYS
        )
        if existing is not None:
            logger.info(f"ℹ️ {email} already holds booking {existing.id} near {slot.date}")
            raise DuplicateBooking()

    async def create_booking(self, slot_id: int, volunteer: VolunteerInfo) -> Booking:
        """
        Book one place on a slot for a volunteer.

        Raises SlotNotFound, SlotInactive, SlotFull or ValidationError. Nothing
        is reserved when validation fails, and no side effect runs unless the
        booking was persisted.
        """
        slot = self.ledger.get_slot(slot_id)
        if slot is None:
            raise SlotNotFound()

        service = slot.service_type
        volunteer = self.validate_volunteer(volunteer, service)
        self.check_duplicate(volunteer.email, slot)

        logger.info(f"📥 Booking slot {slot_id} for {volunteer.email}")
        token = self.ledger.reserve(slot_id)

        try:
            try:
                host_email = self.host_policy.assign_host(slot.service_type_id, slot.date, slot.company_id)
            except NoHostsAvailable as e:
                logger.warning(f"⚠️ Booking on slot {slot_id} proceeds without a host: {e.message}")
                host_email = None

            booking = Booking(
                slot_id=slot.id,
                company_id=slot.company_id,
                service_type_id=slot.service_type_id,
                volunteer_name=volunteer.name,
                volunteer_email=volunteer.email,
                volunteer_phone=volunteer.phone,
                office=volunteer.office,
                host_email=host_email,
                status=BOOKING_CONFIRMED,
            )
            self.db.add(booking)
            self.db.commit()
            self.db.refresh(booking)
        except Exception:
            logger.exception(f"❌ Failed to persist booking on slot {slot_id}, releasing reservation")
            self.db.rollback()
            self.ledger.release_reservation(token)
            raise

        logger.info(f"✅ Booking {booking.id} confirmed (host={host_email or 'unassigned'})")

        effects = [side_effects.calendar_create(booking.id, host_email)]
        effects.append(
            side_effects.email(booking.id, notifications.BOOKING_CONFIRMATION, booking.volunteer_email)
        )
        if host_email:
            effects.append(side_effects.email(booking.id, notifications.HOST_ASSIGNMENT, host_email))
        effects.append(side_effects.crm_sync(booking.id))

        await self.orchestrator.dispatch(effects)
        self.db.refresh(booking)
        return booking

    async def reassign_host(self, booking_id: int, new_host_email: str) -> Booking:
        """Move a booking to another team member; capacity is untouched"""
        booking = self.get_booking(booking_id)
        if booking.is_cancelled:
            raise AlreadyCancelled("Cancelled bookings cannot be reassigned")

        try:
            new_host_email = validate_email(new_host_email)
        except ValueError as e:
            raise ValidationError(str(e))
        if not new_host_email:
            raise ValidationError("New host email is required")
        if new_host_email not in self.host_policy.team_members():
            raise ValidationError(f"{new_host_email} is not a team member")
        if new_host_email == booking.host_email:
            raise ValidationError(f"{new_host_email} already hosts this booking")

        old_host_email = booking.host_email
        old_event_id = booking.google_event_id

        booking.host_email = new_host_email
        # The old event (and its Meet link) goes away with the old host's calendar
        booking.google_event_id = None
        booking.meet_link = None
        self.db.commit()
        logger.info(f"🔄 Booking {booking_id} reassigned from {old_host_email or 'nobody'} to {new_host_email}")

        effects = []
        if old_event_id:
            effects.append(side_effects.calendar_delete(booking_id, old_event_id, old_host_email))
        effects.append(side_effects.calendar_create(booking_id, new_host_email))
        effects.append(side_effects.email(booking_id, notifications.HOST_ASSIGNMENT, new_host_email))
        if old_host_email:
            effects.append(
                side_effects.email(
                    booking_id,
                    notifications.HOST_REASSIGNED,
                    old_host_email,
                    new_host_email=new_host_email,
                )
            )

        await self.orchestrator.dispatch(effects)
        self.db.refresh(booking)
        return booking

    def get_booking(self, booking_id: int) -> Booking:
        booking = self.repo.get_booking(self.db, booking_id)
        if booking is None:
            raise BookingNotFound()
        return booking

    def list_bookings(self, status: Optional[str] = None) -> list[Booking]:
        return self.repo.list_bookings(self.db, status)

    def side_effect_attempts(self, booking_id: int):
        self.get_booking(booking_id)
        return self.repo.side_effects_for(self.db, booking_id)
