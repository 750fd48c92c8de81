"""Booking repository - Database reads for bookings and their side effect attempts"""

from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import BOOKING_CONFIRMED, Booking, SideEffectAttempt, Slot


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def get_booking(db: Session, booking_id: int) -> Optional[Booking]:
        return db.get(Booking, booking_id)

    @staticmethod
    def list_bookings(db: Session, status: Optional[str] = None) -> list[Booking]:
        """All bookings, newest first"""
        query = db.query(Booking).options(
            joinedload(Booking.slot), joinedload(Booking.company), joinedload(Booking.service_type)
        )
        if status:
            query = query.filter(Booking.status == status)
        return query.order_by(Booking.created_at.desc(), Booking.id.desc()).all()

    @staticmethod
    def find_confirmed_near(db: Session, email: str, around: date, window_days: int) -> Optional[Booking]:
        """A confirmed booking for the email on a slot within +/- window_days of the date"""
        return (
            db.query(Booking)
            .join(Slot, Booking.slot_id == Slot.id)
            .filter(
                Booking.volunteer_email == email,
                Booking.status == BOOKING_CONFIRMED,
                Slot.date >= around - timedelta(days=window_days),
                Slot.date <= around + timedelta(days=window_days),
            )
            .first()
        )

    @staticmethod
    def confirmed_on(db: Session, day: date) -> list[Booking]:
        """Confirmed bookings on slots of the given day that were not reminded yet"""
        return (
            db.query(Booking)
            .join(Slot, Booking.slot_id == Slot.id)
            .filter(
                Booking.status == BOOKING_CONFIRMED,
                Booking.reminder_sent_at.is_(None),
                Slot.date == day,
            )
            .order_by(Slot.start_time, Booking.id)
            .all()
        )

    @staticmethod
    def awaiting_soon_reminder(db: Session, first_day: date, last_day: date) -> list[Booking]:
        """Confirmed bookings between two dates without a starting-soon reminder"""
        return (
            db.query(Booking)
            .join(Slot, Booking.slot_id == Slot.id)
            .filter(
                Booking.status == BOOKING_CONFIRMED,
                Booking.soon_reminder_sent_at.is_(None),
                Slot.date >= first_day,
                Slot.date <= last_day,
            )
            .order_by(Slot.date, Slot.start_time, Booking.id)
            .all()
        )

    @staticmethod
    def side_effects_for(db: Session, booking_id: int) -> list[SideEffectAttempt]:
        return (
            db.query(SideEffectAttempt)
            .filter(SideEffectAttempt.booking_id == booking_id)
            .order_by(SideEffectAttempt.id)
            .all()
        )

    @staticmethod
    def due_side_effects(db: Session, now: datetime, limit: int = 100) -> list[SideEffectAttempt]:
        """Failed attempts whose retry time has come"""
        return (
            db.query(SideEffectAttempt)
            .filter(
                SideEffectAttempt.status == "failed",
                SideEffectAttempt.next_attempt_at.isnot(None),
                SideEffectAttempt.next_attempt_at <= now,
            )
            .order_by(SideEffectAttempt.next_attempt_at, SideEffectAttempt.id)
            .limit(limit)
            .all()
        )
