"""Calendar export - an .ics file volunteers can add to any calendar app"""

from datetime import datetime, timezone

from icalendar import Calendar, Event, vCalAddress, vText

from ... import config
from ...models import Booking
from .side_effects import slot_window


def ics_filename(booking: Booking) -> str:
    return f"booking-{booking.company.slug}-{booking.slot.date.isoformat()}.ics"


def booking_to_ics(booking: Booking) -> bytes:
    """
    Single-event calendar for a booking.

    Times are the slot's local times tagged with CALENDAR_TIME_ZONE. Without a
    host the organization mailbox organizes the event. A cancelled booking is
    exported with STATUS:CANCELLED so calendar apps drop it.
    """
    service = booking.service_type
    company = booking.company
    start, end = slot_window(booking.slot)

    description = (
        f"{service.name} session with {company.name}\n\n"
        f"Host: {booking.host_email or 'To be assigned'}"
    )
    if booking.meet_link:
        description += f"\n\nMeeting link: {booking.meet_link}"

    if booking.meet_link:
        location = booking.meet_link
    elif booking.office:
        location = f"{booking.office} office"
    else:
        location = "To be confirmed"

    event = Event()
    event.add("uid", f"booking-{booking.id}@{config.ORGANIZATION_EMAIL.split('@')[-1]}")
    event.add("dtstamp", datetime.now(timezone.utc))
    event.add("dtstart", start, parameters={"TZID": config.CALENDAR_TIME_ZONE})
    event.add("dtend", end, parameters={"TZID": config.CALENDAR_TIME_ZONE})
    event.add("summary", f"{service.name} - {company.name}")
    event.add("description", description)
    event.add("location", location)
    event.add("status", "CANCELLED" if booking.is_cancelled else "CONFIRMED")
    event.add("transp", "OPAQUE")

    organizer = vCalAddress(f"mailto:{booking.host_email or config.ORGANIZATION_EMAIL}")
    organizer.params["cn"] = vText(config.ORGANIZATION_NAME)
    event["organizer"] = organizer

    attendee = vCalAddress(f"mailto:{booking.volunteer_email}")
    attendee.params["cn"] = vText(booking.volunteer_name)
    attendee.params["role"] = vText("REQ-PARTICIPANT")
    attendee.params["partstat"] = vText("ACCEPTED")
    attendee.params["rsvp"] = vText("TRUE")
    event.add("attendee", attendee, encode=0)

    calendar = Calendar()
    calendar.add("prodid", "-//Volunteer Booking//EN")
    calendar.add("version", "2.0")
    calendar.add("method", "PUBLISH")
    calendar.add_component(event)
    return calendar.to_ical()
