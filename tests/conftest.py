"""
Shared fixtures: a file backed SQLite database per test, seed data and in-memory
stand-ins for the calendar, email and CRM collaborators.
"""

import asyncio
import os
from datetime import date, timedelta

# Configuration is read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"
os.environ["DEFAULT_HOST_POOL"] = "ana@quierotrabajo.org,bruno@quierotrabajo.org,carla@quierotrabajo.org"
os.environ["HOST_POOLS"] = "{}"
os.environ["COMPANY_HOST_POOLS"] = "{}"
os.environ["MAX_BOOKINGS_PER_HOST_PER_DAY"] = "0"

import pytest  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from volunteer_booking.database import Base, build_engine  # noqa: E402
from volunteer_booking.models import (  # noqa: E402
    BOOKING_CONFIRMED,
    MODALITY_IN_PERSON,
    MODALITY_VIRTUAL,
    Booking,
    Company,
    ServiceType,
    Slot,
)
from volunteer_booking.services import Integrations  # noqa: E402
from volunteer_booking.services.google_calendar_service import CalendarError, CalendarEvent  # noqa: E402
from volunteer_booking.services.notification_service import NotificationResult  # noqa: E402

HOSTS = ["ana@quierotrabajo.org", "bruno@quierotrabajo.org", "carla@quierotrabajo.org"]


class FakeCalendar:
    def __init__(self):
        self.created = []
        self.deleted = []
        self.fail = False
        self.fail_delete = False
        self.delay = 0.0

    async def create_event(self, request):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise CalendarError("Failed to create calendar event: 503 backend error")
        self.created.append(request)
        event_id = f"evt-{len(self.created)}"
        meet_link = f"https://meet.google.com/{event_id}" if request.create_meet_link else None
        return CalendarEvent(event_id=event_id, meet_link=meet_link)

    async def delete_event(self, event_id, organizer_email):
        if self.fail_delete:
            raise CalendarError("Failed to delete calendar event: 500")
        self.deleted.append((event_id, organizer_email))


class FakeNotifier:
    def __init__(self):
        self.sent = []
        self.failing_recipients = set()

    async def send(self, template_type, recipient, variables):
        if recipient in self.failing_recipients:
            return NotificationResult(success=False, error="SMTP connection refused")
        self.sent.append((template_type, recipient, dict(variables)))
        return NotificationResult(success=True)

    def sent_to(self, recipient):
        return [template for template, to, _ in self.sent if to == recipient]


class FakeCRM:
    def __init__(self):
        self.synced = []
        self.accept = True
        self.error = None

    async def sync_booking(self, summary):
        if self.error:
            raise self.error
        self.synced.append(summary)
        return self.accept


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'bookings.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def calendar():
    return FakeCalendar()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def crm():
    return FakeCRM()


@pytest.fixture
def integrations(calendar, notifier, crm):
    return Integrations(calendar=calendar, notifier=notifier, crm=crm)


@pytest.fixture
def company(db):
    company = Company(name="Acme Consulting", slug="acme")
    db.add(company)
    db.commit()
    return company


@pytest.fixture
def virtual_service(db):
    service = ServiceType(name="Mentoring", slug="mentoring", modality=MODALITY_VIRTUAL)
    db.add(service)
    db.commit()
    return service


@pytest.fixture
def in_person_service(db):
    service = ServiceType(name="Styling", slug="styling", modality=MODALITY_IN_PERSON)
    db.add(service)
    db.commit()
    return service


@pytest.fixture
def session_day():
    return date.today() + timedelta(days=14)


@pytest.fixture
def make_slot(db, company, virtual_service, session_day):
    def _make_slot(
        service=None,
        day=None,
        max_volunteers=1,
        current_volunteers=0,
        active=True,
        start_time="10:00",
        end_time="11:00",
    ):
        slot = Slot(
            company_id=company.id,
            service_type_id=(service or virtual_service).id,
            date=day or session_day,
            start_time=start_time,
            end_time=end_time,
            max_volunteers=max_volunteers,
            current_volunteers=current_volunteers,
            active=active,
        )
        db.add(slot)
        db.commit()
        return slot

    return _make_slot


@pytest.fixture
def make_booking(db):
    """Insert a booking row directly, bypassing the ledger"""

    def _make_booking(slot, email="lucia@example.com", host_email=None, status=BOOKING_CONFIRMED, **fields):
        booking = Booking(
            slot_id=slot.id,
            company_id=slot.company_id,
            service_type_id=slot.service_type_id,
            volunteer_name=fields.pop("volunteer_name", "Lucía Pérez"),
            volunteer_email=email,
            host_email=host_email,
            status=status,
            **fields,
        )
        db.add(booking)
        db.commit()
        return booking

    return _make_booking


def current_volunteers(session_factory, slot_id):
    """Read the counter through a fresh session"""
    session = session_factory()
    try:
        return session.get(Slot, slot_id).current_volunteers
    finally:
        session.close()
