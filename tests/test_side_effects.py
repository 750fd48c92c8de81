"""
Test side effect dispatch, persistence of attempts and retries
"""

from datetime import datetime, timedelta

import pytest

from conftest import HOSTS
from volunteer_booking.domain.scheduling import side_effects
from volunteer_booking.domain.scheduling.repository import BookingRepository
from volunteer_booking.domain.scheduling.side_effects import SideEffectOrchestrator, retry_delay
from volunteer_booking.models import SideEffectAttempt
from volunteer_booking.services import Integrations

ANA, BRUNO, _ = HOSTS


@pytest.fixture
def booking(make_slot, make_booking):
    return make_booking(make_slot(max_volunteers=2), email="lucia@example.com", host_email=ANA)


class TestDispatch:
    @pytest.mark.asyncio
    async def test_failure_is_isolated_and_later_effects_still_run(self, db, booking, integrations, notifier, crm):
        notifier.failing_recipients.add(ANA)
        effects = [
            side_effects.email(booking.id, "host_assignment", ANA),
            side_effects.email(booking.id, "booking_confirmation", "lucia@example.com"),
            side_effects.crm_sync(booking.id),
        ]

        report = await SideEffectOrchestrator(db, integrations).dispatch(effects)

        assert [o.status for o in report.outcomes] == ["failed", "succeeded", "succeeded"]
        assert report.all_succeeded is False
        assert len(report.failed) == 1 and report.failed[0].target == ANA
        assert "SMTP connection refused" in report.failed[0].error
        assert len(crm.synced) == 1

    @pytest.mark.asyncio
    async def test_raising_collaborator_becomes_failed_outcome(self, db, booking, integrations, crm):
        crm.error = RuntimeError("zoho exploded")

        report = await SideEffectOrchestrator(db, integrations).dispatch([side_effects.crm_sync(booking.id)])

        assert report.failed[0].error == "RuntimeError: zoho exploded"

    @pytest.mark.asyncio
    async def test_rejected_crm_sync_is_a_failure(self, db, booking, integrations, crm):
        crm.accept = False

        report = await SideEffectOrchestrator(db, integrations).dispatch([side_effects.crm_sync(booking.id)])

        assert report.failed[0].effect_type == "crm_sync"

    @pytest.mark.asyncio
    async def test_missing_collaborators_are_skipped(self, db, booking):
        effects = [
            side_effects.calendar_create(booking.id, ANA),
            side_effects.email(booking.id, "booking_confirmation", "lucia@example.com"),
            side_effects.crm_sync(booking.id),
            side_effects.calendar_delete(booking.id, None, ANA),
        ]

        report = await SideEffectOrchestrator(db, Integrations()).dispatch(effects)

        assert report.all_succeeded is True
        assert len(report.skipped) == 4
        recorded = BookingRepository.side_effects_for(db, booking.id)
        assert [a.status for a in recorded] == ["skipped"] * 4
        assert all(a.next_attempt_at is None for a in recorded)

    @pytest.mark.asyncio
    async def test_every_attempt_is_persisted(self, db, booking, integrations, calendar):
        calendar.fail = True

        report = await SideEffectOrchestrator(db, integrations).dispatch(
            [side_effects.calendar_create(booking.id, ANA)]
        )

        attempt = db.get(SideEffectAttempt, report.outcomes[0].attempt_id)
        assert attempt.status == "failed"
        assert attempt.target == ANA
        assert attempt.payload == {"host_email": ANA}
        assert attempt.attempts == 1
        assert attempt.next_attempt_at > datetime.utcnow()

    @pytest.mark.asyncio
    async def test_email_variables_merge_booking_and_payload(self, db, booking, integrations, notifier):
        await SideEffectOrchestrator(db, integrations).dispatch(
            [side_effects.email(booking.id, "host_reassigned", ANA, new_host_email=BRUNO)]
        )

        _, recipient, variables = notifier.sent[0]
        assert recipient == ANA
        assert variables["new_host_email"] == BRUNO
        assert variables["volunteer_name"] == "Lucía Pérez"
        assert variables["company_name"] == "Acme Consulting"
        assert variables["start_time"] == "10:00"


class TestRetry:
    @pytest.mark.asyncio
    async def test_retry_recovers_failed_calendar_event(self, db, booking, integrations, calendar):
        calendar.fail = True
        orchestrator = SideEffectOrchestrator(db, integrations)
        await orchestrator.dispatch([side_effects.calendar_create(booking.id, ANA)])
        attempt = db.query(SideEffectAttempt).one()

        calendar.fail = False
        outcome = await orchestrator.retry(attempt)

        assert outcome.status == "succeeded"
        db.refresh(attempt)
        assert attempt.status == "succeeded"
        assert attempt.attempts == 2
        assert attempt.next_attempt_at is None
        db.refresh(booking)
        assert booking.google_event_id == "evt-1"
        assert booking.meet_link == "https://meet.google.com/evt-1"

    @pytest.mark.asyncio
    async def test_retry_does_not_create_a_second_event(self, db, booking, integrations, calendar):
        calendar.fail = True
        orchestrator = SideEffectOrchestrator(db, integrations)
        await orchestrator.dispatch([side_effects.calendar_create(booking.id, ANA)])
        attempt = db.query(SideEffectAttempt).one()
        booking.google_event_id = "evt-created-late"
        db.commit()

        calendar.fail = False
        outcome = await orchestrator.retry(attempt)

        assert outcome.status == "skipped"
        assert calendar.created == []
        db.refresh(booking)
        assert booking.google_event_id == "evt-created-late"

    @pytest.mark.asyncio
    async def test_calendar_create_for_another_host_is_skipped(self, db, booking, integrations, calendar):
        report = await SideEffectOrchestrator(db, integrations).dispatch(
            [side_effects.calendar_create(booking.id, BRUNO)]
        )

        assert report.outcomes[0].status == "skipped"
        assert calendar.created == []

    @pytest.mark.asyncio
    async def test_retry_gives_up_after_max_attempts(self, db, booking, integrations, calendar):
        calendar.fail = True
        orchestrator = SideEffectOrchestrator(db, integrations, max_attempts=2)
        await orchestrator.dispatch([side_effects.calendar_create(booking.id, ANA)])
        attempt = db.query(SideEffectAttempt).one()

        outcome = await orchestrator.retry(attempt)

        assert outcome.status == "failed"
        db.refresh(attempt)
        assert attempt.attempts == 2
        assert attempt.next_attempt_at is None

    @pytest.mark.asyncio
    async def test_only_due_failures_are_picked_up(self, db, booking, integrations, calendar, notifier):
        calendar.fail = True
        notifier.failing_recipients.add("lucia@example.com")
        await SideEffectOrchestrator(db, integrations).dispatch(
            [
                side_effects.calendar_create(booking.id, ANA),
                side_effects.email(booking.id, "booking_confirmation", "lucia@example.com"),
                side_effects.crm_sync(booking.id),
            ]
        )

        assert BookingRepository.due_side_effects(db, datetime.utcnow()) == []
        due = BookingRepository.due_side_effects(db, datetime.utcnow() + timedelta(days=1))
        assert [a.effect_type for a in due] == ["calendar_create", "email"]


def test_retry_delay_doubles():
    assert retry_delay(2) == 2 * retry_delay(1)
    assert retry_delay(3) == 4 * retry_delay(1)
