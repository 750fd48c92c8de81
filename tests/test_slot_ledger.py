"""
Test slot capacity accounting
"""

import threading
from datetime import timedelta

import pytest

from conftest import current_volunteers
from volunteer_booking.domain.scheduling.errors import SlotFull, SlotInactive, SlotNotFound
from volunteer_booking.domain.scheduling.slot_ledger import SlotLedger


class TestReserve:
    def test_reserve_takes_one_unit_and_commits(self, db, session_factory, make_slot):
        slot = make_slot(max_volunteers=2)

        token = SlotLedger(db).reserve(slot.id)

        assert token.slot_id == slot.id
        assert token.released is False
        assert current_volunteers(session_factory, slot.id) == 1

    def test_try_reserve_reports_zero_rows_when_full(self, db, session_factory, make_slot):
        slot = make_slot(max_volunteers=1, current_volunteers=1)

        assert SlotLedger(db).try_reserve(slot.id) == 0
        db.rollback()
        assert current_volunteers(session_factory, slot.id) == 1

    def test_full_slot_raises_slot_full(self, db, make_slot):
        slot = make_slot(max_volunteers=2, current_volunteers=2)

        with pytest.raises(SlotFull) as exc:
            SlotLedger(db).reserve(slot.id)
        assert exc.value.kind == "SLOT_FULL"

    def test_inactive_slot_raises_slot_inactive(self, db, session_factory, make_slot):
        slot = make_slot(max_volunteers=3, active=False)

        with pytest.raises(SlotInactive):
            SlotLedger(db).reserve(slot.id)
        assert current_volunteers(session_factory, slot.id) == 0

    def test_unknown_slot_raises_slot_not_found(self, db):
        with pytest.raises(SlotNotFound):
            SlotLedger(db).reserve(9999)


class TestRelease:
    def test_reserve_then_release_restores_counter(self, db, session_factory, make_slot):
        slot = make_slot(max_volunteers=3, current_volunteers=1)
        ledger = SlotLedger(db)

        ledger.reserve(slot.id)
        assert current_volunteers(session_factory, slot.id) == 2

        assert ledger.release(slot.id) is True
        assert current_volunteers(session_factory, slot.id) == 1

    def test_release_never_goes_below_zero(self, db, session_factory, make_slot):
        slot = make_slot(max_volunteers=1, current_volunteers=0)

        assert SlotLedger(db).release(slot.id) is False
        assert current_volunteers(session_factory, slot.id) == 0

    def test_release_reservation_is_idempotent(self, db, session_factory, make_slot):
        slot = make_slot(max_volunteers=2, current_volunteers=1)
        ledger = SlotLedger(db)
        token = ledger.reserve(slot.id)

        assert ledger.release_reservation(token) is True
        assert ledger.release_reservation(token) is False
        assert token.released is True
        assert current_volunteers(session_factory, slot.id) == 1

    def test_release_without_commit_joins_caller_transaction(self, db, session_factory, make_slot):
        slot = make_slot(max_volunteers=1, current_volunteers=1)
        ledger = SlotLedger(db)

        ledger.release(slot.id, commit=False)
        db.rollback()

        assert current_volunteers(session_factory, slot.id) == 1


class TestAvailableSlots:
    def test_only_active_slots_with_room_are_listed(self, db, make_slot, in_person_service, session_day):
        later = make_slot(day=session_day + timedelta(days=1), max_volunteers=2)
        early = make_slot(start_time="09:00", end_time="10:00", max_volunteers=2, current_volunteers=1)
        make_slot(max_volunteers=1, current_volunteers=1)  # full
        make_slot(max_volunteers=1, active=False)
        other_service = make_slot(service=in_person_service, max_volunteers=1)

        ledger = SlotLedger(db)

        assert [s.id for s in ledger.available_slots()] == [early.id, other_service.id, later.id]
        assert [s.id for s in ledger.available_slots(service_type_id=in_person_service.id)] == [
            other_service.id
        ]
        assert [s.id for s in ledger.available_slots(from_date=session_day + timedelta(days=1))] == [later.id]


class TestConcurrentReservations:
    def test_last_unit_is_sold_exactly_once(self, session_factory, make_slot):
        """Test that many simultaneous requests for a single place produce one winner"""
        slot = make_slot(max_volunteers=1)
        attempts = 10
        barrier = threading.Barrier(attempts)
        results = []
        lock = threading.Lock()

        def attempt():
            session = session_factory()
            try:
                barrier.wait()
                SlotLedger(session).reserve(slot.id)
                outcome = "reserved"
            except SlotFull:
                outcome = "full"
            finally:
                session.close()
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=attempt) for _ in range(attempts)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count("reserved") == 1
        assert results.count("full") == attempts - 1
        assert current_volunteers(session_factory, slot.id) == 1

    def test_capacity_is_never_exceeded(self, session_factory, make_slot):
        slot = make_slot(max_volunteers=3)
        attempts = 8
        barrier = threading.Barrier(attempts)
        reserved = []

        def attempt():
            session = session_factory()
            try:
                barrier.wait()
                SlotLedger(session).reserve(slot.id)
                reserved.append(True)
            except SlotFull:
                pass
            finally:
                session.close()

        threads = [threading.Thread(target=attempt) for _ in range(attempts)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(reserved) == 3
        assert current_volunteers(session_factory, slot.id) == 3
