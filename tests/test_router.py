"""
Test the HTTP surface: status codes and {kind, message} error bodies
"""

import pytest
from fastapi.testclient import TestClient

from conftest import HOSTS, current_volunteers
from volunteer_booking.database import get_db
from volunteer_booking.main import app

ANA, BRUNO, _ = HOSTS


@pytest.fixture
def client(session_factory, integrations):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.state.integrations = integrations
    # Not used as a context manager: the lifespan would build real integrations
    yield TestClient(app)
    app.dependency_overrides.clear()
    app.state.integrations = None


def booking_payload(slot_id, **overrides):
    payload = {
        "slotId": slot_id,
        "volunteerName": "Lucía Pérez",
        "volunteerEmail": "lucia@example.com",
        "volunteerPhone": "+34 612 345 678",
    }
    payload.update(overrides)
    return payload


class TestBookingEndpoints:
    def test_create_booking(self, client, make_slot):
        slot = make_slot(max_volunteers=2)

        response = client.post("/bookings", json=booking_payload(slot.id))

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "confirmed"
        assert data["hostEmail"] == ANA
        assert data["meetLink"] == "https://meet.google.com/evt-1"
        assert isinstance(data["bookingId"], int)

    def test_full_slot_is_409(self, client, make_slot):
        slot = make_slot(max_volunteers=1, current_volunteers=1)

        response = client.post("/bookings", json=booking_payload(slot.id))

        assert response.status_code == 409
        assert response.json()["kind"] == "SLOT_FULL"
        assert response.json()["message"]

    def test_unknown_and_inactive_slots(self, client, make_slot):
        inactive = make_slot(active=False)

        missing = client.post("/bookings", json=booking_payload(424242))
        assert missing.status_code == 404
        assert missing.json()["kind"] == "VALIDATION_ERROR"

        closed = client.post("/bookings", json=booking_payload(inactive.id))
        assert closed.status_code == 409
        assert closed.json()["kind"] == "VALIDATION_ERROR"

    def test_invalid_email_is_422(self, client, make_slot):
        slot = make_slot()

        response = client.post("/bookings", json=booking_payload(slot.id, volunteerEmail="lucia-at-example"))

        assert response.status_code == 422
        assert response.json() == {"kind": "VALIDATION_ERROR", "message": "Invalid email format"}

    def test_missing_field_is_a_typed_validation_error(self, client, make_slot, session_factory):
        slot = make_slot()
        payload = booking_payload(slot.id)
        del payload["volunteerEmail"]

        response = client.post("/bookings", json=payload)

        assert response.status_code == 422
        body = response.json()
        assert body["kind"] == "VALIDATION_ERROR"
        assert "volunteerEmail" in body["message"]
        assert "detail" not in body
        assert current_volunteers(session_factory, slot.id) == 0

    def test_wrongly_typed_field_is_a_typed_validation_error(self, client):
        response = client.post("/bookings", json=booking_payload("abc"))

        assert response.status_code == 422
        body = response.json()
        assert body["kind"] == "VALIDATION_ERROR"
        assert body["message"].startswith("slotId")

    def test_cancel_twice(self, client, make_slot):
        slot = make_slot()
        booking_id = client.post("/bookings", json=booking_payload(slot.id)).json()["bookingId"]

        first = client.post(f"/bookings/{booking_id}/cancel", json={"reason": "Illness"})
        assert first.status_code == 200
        assert first.json() == {"status": "cancelled"}

        again = client.post(f"/bookings/{booking_id}/cancel")
        assert again.status_code == 200
        assert again.json() == {"status": "cancelled", "kind": "ALREADY_CANCELLED"}

        detail = client.get(f"/bookings/{booking_id}").json()
        assert detail["status"] == "cancelled"
        assert detail["cancellationReason"] == "Illness"

    def test_cancel_unknown_booking(self, client):
        response = client.post("/bookings/999/cancel")

        assert response.status_code == 404
        assert response.json()["kind"] == "NOT_FOUND"

    def test_get_list_and_side_effects(self, client, make_slot):
        slot = make_slot(max_volunteers=2)
        booking_id = client.post("/bookings", json=booking_payload(slot.id)).json()["bookingId"]

        detail = client.get(f"/bookings/{booking_id}")
        assert detail.status_code == 200
        assert detail.json()["volunteerPhone"] == "+34612345678"
        assert detail.json()["serviceName"] == "Mentoring"
        assert detail.json()["startTime"] == "10:00"

        assert [b["id"] for b in client.get("/bookings").json()] == [booking_id]
        assert client.get("/bookings", params={"status": "cancelled"}).json() == []

        effects = client.get(f"/bookings/{booking_id}/side-effects").json()
        assert [e["effectType"] for e in effects] == ["calendar_create", "email", "email", "crm_sync"]
        assert {e["status"] for e in effects} == {"succeeded"}

        assert client.get("/bookings/31337").status_code == 404
        assert client.get("/bookings/31337/side-effects").status_code == 404

    def test_reassign_host(self, client, make_slot):
        slot = make_slot()
        booking_id = client.post("/bookings", json=booking_payload(slot.id)).json()["bookingId"]

        response = client.post(f"/bookings/{booking_id}/host", json={"newHostEmail": BRUNO})
        assert response.status_code == 200
        assert response.json()["hostEmail"] == BRUNO

        rejected = client.post(f"/bookings/{booking_id}/host", json={"newHostEmail": "someone@example.com"})
        assert rejected.status_code == 422
        assert rejected.json()["kind"] == "VALIDATION_ERROR"

    def test_calendar_export(self, client, make_slot, session_day):
        slot = make_slot()
        booking_id = client.post("/bookings", json=booking_payload(slot.id)).json()["bookingId"]

        response = client.get(f"/bookings/{booking_id}/calendar.ics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/calendar")
        assert (
            response.headers["content-disposition"]
            == f"attachment; filename=booking-acme-{session_day.isoformat()}.ics"
        )
        assert response.content.startswith(b"BEGIN:VCALENDAR")

        missing = client.get("/bookings/31337/calendar.ics")
        assert missing.status_code == 404
        assert missing.json()["kind"] == "NOT_FOUND"


class TestSlotAndHostEndpoints:
    def test_available_slots(self, client, make_slot, company, virtual_service):
        open_slot = make_slot(max_volunteers=3, current_volunteers=1)
        make_slot(max_volunteers=1, current_volunteers=1)

        slots = client.get("/slots", params={"companyId": company.id, "serviceTypeId": virtual_service.id}).json()

        assert [s["id"] for s in slots] == [open_slot.id]
        assert slots[0]["remaining"] == 2
        assert slots[0]["modality"] == "virtual"

    def test_hosts(self, client):
        assert client.get("/hosts").json() == HOSTS

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}
