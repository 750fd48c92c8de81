"""
Session reminders
Two passes: once a day every confirmed booking on tomorrow's slots gets a
reminder for the volunteer and the host, and every hour the sessions starting
within SOON_REMINDER_HOURS get a second one. Failed reminder emails are retried
like any other side effect.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from ... import config
from ...models import Booking
from ...services import notification_service as notifications
from . import side_effects
from .repository import BookingRepository
from .side_effects import SideEffectOrchestrator, slot_window

logger = logging.getLogger(__name__)


def local_now() -> datetime:
    """Current wall clock time where sessions happen, without tzinfo like slot times"""
    return datetime.now(tz=ZoneInfo(config.CALENDAR_TIME_ZONE)).replace(tzinfo=None)


def bookings_due_for_reminder(db: Session, day: Optional[date] = None) -> list[Booking]:
    """Confirmed, not yet reminded bookings on the given day (tomorrow by default)"""
    if day is None:
        day = date.today() + timedelta(days=1)
    return BookingRepository.confirmed_on(db, day)


def bookings_starting_soon(
    db: Session, now: Optional[datetime] = None, hours: Optional[int] = None
) -> list[Booking]:
    """Confirmed bookings starting after now and at most `hours` later"""
    now = now or local_now()
    until = now + timedelta(hours=hours or config.SOON_REMINDER_HOURS)

    candidates = BookingRepository.awaiting_soon_reminder(db, now.date(), until.date())
    return [b for b in candidates if now < slot_window(b.slot)[0] <= until]


async def send_reminders(
    db: Session, orchestrator: SideEffectOrchestrator, day: Optional[date] = None
) -> int:
    """Dispatch reminder emails and stamp reminder_sent_at. Returns bookings reminded."""
    bookings = bookings_due_for_reminder(db, day)
    if not bookings:
        logger.info("ℹ️ No bookings need a reminder")
        return 0

    logger.info(f"📧 Sending reminders for {len(bookings)} bookings")
    for booking in bookings:
        booking_id = booking.id
        effects = [
            side_effects.email(booking_id, notifications.BOOKING_REMINDER, booking.volunteer_email)
        ]
        if booking.host_email:
            effects.append(side_effects.email(booking_id, notifications.HOST_REMINDER, booking.host_email))

        await orchestrator.dispatch(effects)

        booking.reminder_sent_at = datetime.utcnow()
        db.commit()

    logger.info(f"✅ Reminders sent for {len(bookings)} bookings")
    return len(bookings)


async def send_soon_reminders(
    db: Session,
    orchestrator: SideEffectOrchestrator,
    now: Optional[datetime] = None,
    hours: Optional[int] = None,
) -> int:
    """Remind volunteer and host shortly before the session. Returns bookings reminded."""
    hours = hours or config.SOON_REMINDER_HOURS
    bookings = bookings_starting_soon(db, now, hours)
    if not bookings:
        logger.info(f"ℹ️ No sessions start within {hours} hours")
        return 0

    logger.info(f"⏰ Sending starting-soon reminders for {len(bookings)} bookings")
    for booking in bookings:
        booking_id = booking.id
        effects = [
            side_effects.email(
                booking_id, notifications.SESSION_STARTING_SOON, booking.volunteer_email, hours=hours
            )
        ]
        if booking.host_email:
            effects.append(
                side_effects.email(
                    booking_id, notifications.HOST_SESSION_STARTING_SOON, booking.host_email, hours=hours
                )
            )

        await orchestrator.dispatch(effects)

        booking.soon_reminder_sent_at = datetime.utcnow()
        db.commit()

    logger.info(f"✅ Starting-soon reminders sent for {len(bookings)} bookings")
    return len(bookings)
