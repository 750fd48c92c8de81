"""
Slot Ledger
Owns the capacity counter of each slot. Every change to current_volunteers goes
through a conditional UPDATE so concurrent requests can never oversell a slot.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ...models import Slot
from .errors import SlotFull, SlotInactive, SlotNotFound

logger = logging.getLogger(__name__)


@dataclass
class ReservationToken:
    """Proof that one unit of a slot's capacity was reserved"""

    slot_id: int
    reserved_at: datetime = field(default_factory=datetime.utcnow)
    released: bool = False


class SlotLedger:
    """Capacity accounting for bookable slots"""

    def __init__(self, db: Session):
        self.db = db

    def try_reserve(self, slot_id: int) -> int:
        """
        Conditional increment of the slot counter.

        Returns the number of affected rows: 1 when a unit was taken, 0 when the
        slot is missing, inactive or already full. Does not commit.
        """
        stmt = (
            update(Slot)
            .where(
                Slot.id == slot_id,
                Slot.active.is_(True),
                Slot.current_volunteers < Slot.max_volunteers,
            )
            .values(current_volunteers=Slot.current_volunteers + 1)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount

    def reserve(self, slot_id: int) -> ReservationToken:
        """
        Atomically reserve one unit of capacity and commit.

        Raises SlotNotFound, SlotInactive or SlotFull. A conditional update that
        lost a race against another request is reported as SlotFull.
        """
        try:
            affected = self.try_reserve(slot_id)
        except Exception:
            self.db.rollback()
            raise

        if affected == 1:
            self.db.commit()
            logger.info(f"✅ Reserved capacity on slot {slot_id}")
            return ReservationToken(slot_id=slot_id)

        self.db.rollback()

        slot = self.db.get(Slot, slot_id)
        if slot is None:
            logger.info(f"ℹ️ Reservation rejected, slot {slot_id} does not exist")
            raise SlotNotFound()
        if not slot.active:
            logger.info(f"ℹ️ Reservation rejected, slot {slot_id} is inactive")
            raise SlotInactive()

        logger.info(
            f"ℹ️ Reservation rejected, slot {slot_id} is full "
            f"({slot.current_volunteers}/{slot.max_volunteers})"
        )
        raise SlotFull()

    def release(self, slot_id: int, commit: bool = True) -> bool:
        """
        Give back one unit of capacity.

        The decrement is guarded so the counter never goes below zero. Callers
        must make sure they release at most once per booking (the booking status
        transition is the guard). Pass commit=False to keep the release inside
        the caller's transaction.
        """
        stmt = (
            update(Slot)
            .where(Slot.id == slot_id, Slot.current_volunteers > 0)
            .values(current_volunteers=Slot.current_volunteers - 1)
            .execution_options(synchronize_session=False)
        )
        affected = self.db.execute(stmt).rowcount

        if commit:
            self.db.commit()

        if affected == 0:
            logger.warning(f"⚠️ Release on slot {slot_id} had nothing to release")
            return False

        logger.info(f"✅ Released capacity on slot {slot_id}")
        return True

    def release_reservation(self, token: ReservationToken) -> bool:
        """Undo a reservation from a failure path; safe to call more than once"""
        if token.released:
            logger.debug(f"Reservation on slot {token.slot_id} already released")
            return False

        released = self.release(token.slot_id)
        token.released = True
        return released

    def get_slot(self, slot_id: int) -> Optional[Slot]:
        return self.db.get(Slot, slot_id)

    def available_slots(
        self,
        company_id: Optional[int] = None,
        service_type_id: Optional[int] = None,
        from_date: Optional[date] = None,
    ) -> list[Slot]:
        """Active slots with free capacity, ordered by date and start time"""
        query = self.db.query(Slot).filter(
            Slot.active.is_(True), Slot.current_volunteers < Slot.max_volunteers
        )

        if company_id is not None:
            query = query.filter(Slot.company_id == company_id)
        if service_type_id is not None:
            query = query.filter(Slot.service_type_id == service_type_id)
        if from_date is not None:
            query = query.filter(Slot.date >= from_date)

        return query.order_by(Slot.date, Slot.start_time).all()
