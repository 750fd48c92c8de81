"""
Cancellation Workflow
confirmed -> cancelled is the only transition and cancelled is terminal. The
status change and the capacity release commit together, so a booking gives its
place back exactly once no matter how often the cancel request is retried.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ...models import BOOKING_CANCELLED, BOOKING_CONFIRMED, Booking
from ...services import Integrations
from ...services import notification_service as notifications
from . import side_effects
from .errors import AlreadyCancelled, BookingNotFound
from .side_effects import SideEffectOrchestrator
from .slot_ledger import SlotLedger

logger = logging.getLogger(__name__)


class CancellationWorkflow:
    def __init__(
        self,
        db: Session,
        integrations: Optional[Integrations] = None,
        ledger: Optional[SlotLedger] = None,
        orchestrator: Optional[SideEffectOrchestrator] = None,
    ):
        self.db = db
        self.ledger = ledger or SlotLedger(db)
        self.orchestrator = orchestrator or SideEffectOrchestrator(db, integrations or Integrations())

    def _transition(self, booking: Booking, reason: Optional[str]) -> None:
        stmt = (
            update(Booking)
            .where(Booking.id == booking.id, Booking.status == BOOKING_CONFIRMED)
            .values(
                status=BOOKING_CANCELLED,
                cancelled_at=datetime.utcnow(),
                cancellation_reason=reason,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            changed = self.db.execute(stmt).rowcount
            if changed == 0:
                # Lost the race against another cancel of the same booking
                self.db.rollback()
                raise AlreadyCancelled()

            self.ledger.release(booking.slot_id, commit=False)
            self.db.commit()
        except AlreadyCancelled:
            raise
        except Exception:
            self.db.rollback()
            raise

    async def cancel_booking(self, booking_id: int, reason: Optional[str] = None) -> Booking:
        """
        Cancel a confirmed booking and release its slot capacity.

        Raises BookingNotFound, or AlreadyCancelled when the booking was
        cancelled before (including by a concurrent request).
        """
        booking = self.db.get(Booking, booking_id)
        if booking is None:
            raise BookingNotFound()
        if booking.is_cancelled:
            raise AlreadyCancelled()

        reason = reason.strip() if reason and reason.strip() else None
        slot_id = booking.slot_id
        self._transition(booking, reason)
        self.db.refresh(booking)
        logger.info(f"✅ Booking {booking_id} cancelled, capacity returned to slot {slot_id}")

        effects = []
        if booking.google_event_id:
            effects.append(
                side_effects.calendar_delete(booking_id, booking.google_event_id, booking.host_email)
            )
        effects.append(
            side_effects.email(booking_id, notifications.CANCELLATION_VOLUNTEER, booking.volunteer_email)
        )
        if booking.host_email:
            effects.append(
                side_effects.email(booking_id, notifications.CANCELLATION_HOST, booking.host_email)
            )
        effects.append(side_effects.crm_sync(booking_id))

        await self.orchestrator.dispatch(effects)
        self.db.refresh(booking)
        return booking
