"""
Side Effect Orchestrator
Runs the external calls a booking triggers (calendar, email, CRM). Every effect
gets its own failure boundary and timeout, and every attempt is stored in
side_effect_attempts so failures can be inspected and retried later.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ... import config
from ...models import Booking, SideEffectAttempt, Slot
from ...services import Integrations
from ...services import notification_service as notifications
from ...services.google_calendar_service import CalendarEventRequest
from ...services.zoho_crm_service import BookingSummary

logger = logging.getLogger(__name__)

CALENDAR_CREATE = "calendar_create"
CALENDAR_DELETE = "calendar_delete"
EMAIL = "email"
CRM_SYNC = "crm_sync"

STATUS_SUCCEEDED = "succeeded"
STATUS_FAILED = "failed"
STATUS_SKIPPED = "skipped"

# Emails only the booking's current host should receive
CURRENT_HOST_TEMPLATES = {
    notifications.HOST_ASSIGNMENT,
    notifications.CANCELLATION_HOST,
    notifications.HOST_REMINDER,
    notifications.HOST_SESSION_STARTING_SOON,
}


class SkipEffect(Exception):
    """Nothing to do (collaborator not configured, no event to delete, ...)"""


class EffectFailed(Exception):
    """Collaborator reported a failure without raising"""


@dataclass
class SideEffect:
    effect_type: str
    booking_id: int
    payload: dict = field(default_factory=dict)

    @property
    def target(self) -> Optional[str]:
        return (
            self.payload.get("recipient")
            or self.payload.get("event_id")
            or self.payload.get("host_email")
        )


def calendar_create(booking_id: int, host_email: Optional[str]) -> SideEffect:
    return SideEffect(CALENDAR_CREATE, booking_id, {"host_email": host_email})


def calendar_delete(booking_id: int, event_id: Optional[str], host_email: Optional[str]) -> SideEffect:
    return SideEffect(CALENDAR_DELETE, booking_id, {"event_id": event_id, "host_email": host_email})


def email(booking_id: int, template_type: str, recipient: str, **variables) -> SideEffect:
    return SideEffect(
        EMAIL,
        booking_id,
        {"template_type": template_type, "recipient": recipient, "variables": variables},
    )


def crm_sync(booking_id: int) -> SideEffect:
    return SideEffect(CRM_SYNC, booking_id, {})


@dataclass
class EffectOutcome:
    effect_type: str
    target: Optional[str]
    status: str
    error: Optional[str] = None
    attempt_id: Optional[int] = None


@dataclass
class DispatchReport:
    outcomes: list[EffectOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> list[EffectOutcome]:
        return [o for o in self.outcomes if o.status == STATUS_SUCCEEDED]

    @property
    def failed(self) -> list[EffectOutcome]:
        return [o for o in self.outcomes if o.status == STATUS_FAILED]

    @property
    def skipped(self) -> list[EffectOutcome]:
        return [o for o in self.outcomes if o.status == STATUS_SKIPPED]

    @property
    def all_succeeded(self) -> bool:
        return not self.failed


def slot_window(slot: Slot) -> tuple[datetime, datetime]:
    start = datetime.combine(slot.date, time.fromisoformat(slot.start_time))
    end = datetime.combine(slot.date, time.fromisoformat(slot.end_time))
    return start, end


def booking_variables(booking: Booking) -> dict:
    """Template variables describing a booking"""
    slot = booking.slot
    return {
        "booking_id": booking.id,
        "volunteer_name": booking.volunteer_name,
        "volunteer_email": booking.volunteer_email,
        "volunteer_phone": booking.volunteer_phone,
        "company_name": booking.company.name,
        "service_name": booking.service_type.name,
        "modality": booking.service_type.modality,
        "date": slot.date.strftime("%d/%m/%Y"),
        "start_time": slot.start_time,
        "end_time": slot.end_time,
        "office": booking.office,
        "meet_link": booking.meet_link,
        "host_email": booking.host_email,
        "reason": booking.cancellation_reason,
    }


def booking_summary(booking: Booking) -> BookingSummary:
    start, end = slot_window(booking.slot)
    return BookingSummary(
        booking_id=booking.id,
        status=booking.status,
        volunteer_name=booking.volunteer_name,
        volunteer_email=booking.volunteer_email,
        volunteer_phone=booking.volunteer_phone,
        company_name=booking.company.name,
        service_name=booking.service_type.name,
        start=start.isoformat(),
        end=end.isoformat(),
        host_email=booking.host_email,
        cancellation_reason=booking.cancellation_reason,
    )


def retry_delay(attempts: int) -> timedelta:
    """Exponential backoff, doubling with every failed attempt"""
    return timedelta(seconds=config.SIDE_EFFECT_RETRY_BASE_SECONDS * 2**attempts)


class SideEffectOrchestrator:
    """
    Runs side effects with a per-effect timeout and records every attempt.

    The timeout stops waiting, it does not stop the work. Calls that run in a
    thread (SMTP, Resend, Google token refresh) keep going after asyncio.wait_for
    gives up, so a timed-out effect may still have happened remotely. Handlers
    check the booking's current state before acting so a replay does not repeat
    an effect whose result was already stored. A calendar event created after
    its timeout is not stored and a replay creates it again.
    """

    def __init__(
        self,
        db: Session,
        integrations: Integrations,
        timeout: float = config.SIDE_EFFECT_TIMEOUT_SECONDS,
        max_attempts: int = config.SIDE_EFFECT_MAX_ATTEMPTS,
    ):
        self.db = db
        self.integrations = integrations
        self.timeout = timeout
        self.max_attempts = max_attempts
        self._handlers = {
            CALENDAR_CREATE: self._calendar_create,
            CALENDAR_DELETE: self._calendar_delete,
            EMAIL: self._email,
            CRM_SYNC: self._crm_sync,
        }

    async def dispatch(self, effects: list[SideEffect]) -> DispatchReport:
        """
        Attempt every effect in order and record the outcome of each one.

        Never raises: a failing or slow collaborator only produces a failed
        outcome, the remaining effects still run.
        """
        report = DispatchReport()
        for effect in effects:
            status, error = await self._run(effect)
            attempt_id = self._record(effect, status, error)
            report.outcomes.append(
                EffectOutcome(effect.effect_type, effect.target, status, error, attempt_id)
            )

        if report.failed:
            logger.warning(
                f"⚠️ {len(report.failed)}/{len(report.outcomes)} side effects failed "
                f"for booking {effects[0].booking_id}"
            )
        return report

    async def retry(self, attempt: SideEffectAttempt) -> EffectOutcome:
        """Replay a recorded failed attempt and update its record"""
        effect = SideEffect(attempt.effect_type, attempt.booking_id, dict(attempt.payload or {}))
        status, error = await self._run(effect)

        attempt_id = attempt.id
        try:
            attempt.attempts += 1
            attempt.status = status
            attempt.error = error
            attempt.next_attempt_at = self._next_attempt_at(status, attempt.attempts)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Could not update side effect attempt {attempt_id}: {e}")

        return EffectOutcome(effect.effect_type, effect.target, status, error, attempt_id)

    async def _run(self, effect: SideEffect) -> tuple[str, Optional[str]]:
        handler = self._handlers.get(effect.effect_type)
        if handler is None:
            return STATUS_FAILED, f"Unknown side effect type {effect.effect_type}"

        try:
            await asyncio.wait_for(handler(effect), timeout=self.timeout)
            logger.info(f"✅ {effect.effect_type} for booking {effect.booking_id} succeeded")
            return STATUS_SUCCEEDED, None
        except SkipEffect as e:
            logger.info(f"ℹ️ {effect.effect_type} for booking {effect.booking_id} skipped: {e}")
            return STATUS_SKIPPED, str(e)
        except asyncio.TimeoutError:
            error = f"Timed out after {self.timeout}s"
        except Exception as e:
            error = f"{type(e).__name__}: {e}"

        self.db.rollback()
        logger.error(
            f"❌ {effect.effect_type} for booking {effect.booking_id} "
            f"(target={effect.target}) failed: {error}"
        )
        return STATUS_FAILED, error

    def _next_attempt_at(self, status: str, attempts: int) -> Optional[datetime]:
        if status != STATUS_FAILED or attempts >= self.max_attempts:
            return None
        return datetime.utcnow() + retry_delay(attempts)

    def _record(self, effect: SideEffect, status: str, error: Optional[str]) -> Optional[int]:
        attempt = SideEffectAttempt(
            booking_id=effect.booking_id,
            effect_type=effect.effect_type,
            target=effect.target,
            payload=effect.payload,
            status=status,
            error=error,
            attempts=1,
            next_attempt_at=self._next_attempt_at(status, 1),
        )
        try:
            self.db.add(attempt)
            self.db.commit()
            return attempt.id
        except Exception as e:
            self.db.rollback()
            logger.error(
                f"❌ Could not record {effect.effect_type} outcome ({status}) "
                f"for booking {effect.booking_id}: {e}"
            )
            return None

    def _load_booking(self, booking_id: int) -> Booking:
        booking = self.db.get(Booking, booking_id)
        if booking is None:
            raise SkipEffect(f"Booking {booking_id} no longer exists")
        return booking

    async def _calendar_create(self, effect: SideEffect) -> None:
        calendar = self.integrations.calendar
        if calendar is None:
            raise SkipEffect("Calendar not configured")

        host_email = effect.payload.get("host_email")
        if not host_email:
            raise SkipEffect("No host assigned")

        booking = self._load_booking(effect.booking_id)
        if booking.is_cancelled:
            raise SkipEffect("Booking is cancelled")
        # A replay must not create a second event or one in a former host's calendar
        if booking.host_email != host_email:
            raise SkipEffect(f"{host_email} no longer hosts this booking")
        if booking.google_event_id:
            raise SkipEffect(f"Calendar event {booking.google_event_id} already exists")

        service = booking.service_type
        company = booking.company
        start, end = slot_window(booking.slot)
        request = CalendarEventRequest(
            summary=f"{service.name} - {company.name} - {booking.volunteer_name}",
            description=(
                f"{service.name} session with {company.name}\n\n"
                f"Volunteer: {booking.volunteer_name}\n"
                f"Email: {booking.volunteer_email}\n"
                f"Phone: {booking.volunteer_phone or 'Not provided'}\n\n"
                f"Modality: {service.modality}"
            ),
            start=start,
            end=end,
            attendee_email=booking.volunteer_email,
            organizer_email=host_email,
            location=None if service.is_virtual else f"{booking.office} office",
            create_meet_link=service.is_virtual,
        )

        event = await calendar.create_event(request)

        # Persist right away so cancellation can always find the event
        booking.google_event_id = event.event_id
        booking.meet_link = event.meet_link
        self.db.commit()

    async def _calendar_delete(self, effect: SideEffect) -> None:
        event_id = effect.payload.get("event_id")
        host_email = effect.payload.get("host_email")
        if not event_id:
            raise SkipEffect("No calendar event to delete")
        if not host_email:
            raise SkipEffect("Calendar event has no organizer")

        calendar = self.integrations.calendar
        if calendar is None:
            raise SkipEffect("Calendar not configured")

        await calendar.delete_event(event_id, host_email)

        booking = self.db.get(Booking, effect.booking_id)
        if booking is not None and booking.google_event_id == event_id:
            booking.google_event_id = None
            booking.meet_link = None
            self.db.commit()

    async def _email(self, effect: SideEffect) -> None:
        notifier = self.integrations.notifier
        if notifier is None:
            raise SkipEffect("Email not configured")

        recipient = effect.payload.get("recipient")
        if not recipient:
            raise SkipEffect("No recipient")

        template_type = effect.payload["template_type"]
        booking = self._load_booking(effect.booking_id)
        if template_type in CURRENT_HOST_TEMPLATES and recipient != booking.host_email:
            raise SkipEffect(f"{recipient} no longer hosts this booking")

        variables = booking_variables(booking)
        variables.update(effect.payload.get("variables") or {})

        result = await notifier.send(template_type, recipient, variables)
        if not result.success:
            raise EffectFailed(result.error or "Notification was not delivered")

    async def _crm_sync(self, effect: SideEffect) -> None:
        crm = self.integrations.crm
        if crm is None:
            raise SkipEffect("CRM not configured")

        booking = self._load_booking(effect.booking_id)
        if not await crm.sync_booking(booking_summary(booking)):
            raise EffectFailed("CRM sync was not accepted")
