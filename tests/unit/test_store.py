"""Unit tests for the reservation store queries and constraints."""
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from office_common.errors import SlotTakenError
from office_common.models import Reservation, ReservationStatus
from office_common.store import ReservationStore

BASE = datetime(2030, 1, 7, 10, 0)


@pytest.fixture()
def store(db_session) -> ReservationStore:
    return ReservationStore(db_session)


@pytest.fixture()
def add_reservation(store):
    def factory(user, room, start, status=ReservationStatus.CONFIRMED):
        return store.insert(
            Reservation(
                user_id=user.id,
                room_id=room.id,
                start_time=start,
                end_time=start + timedelta(hours=1),
                status=status,
                total_hours=Decimal("1"),
            )
        )

    return factory


class TestOverlap:
    def test_same_interval_overlaps(self, store, add_reservation, alice, room):
        existing = add_reservation(alice, room, BASE)

        found = store.find_overlapping(room.id, BASE, BASE + timedelta(hours=1))

        assert [r.id for r in found] == [existing.id]

    def test_touching_intervals_do_not_overlap(self, store, add_reservation, alice, room):
        add_reservation(alice, room, BASE)

        assert store.find_overlapping(room.id, BASE + timedelta(hours=1), BASE + timedelta(hours=2)) == []
        assert store.find_overlapping(room.id, BASE - timedelta(hours=1), BASE) == []

    def test_containing_interval_overlaps(self, store, add_reservation, alice, room):
        add_reservation(alice, room, BASE)

        found = store.find_overlapping(room.id, BASE - timedelta(hours=2), BASE + timedelta(hours=3))

        assert len(found) == 1

    def test_status_filter(self, store, add_reservation, alice, room):
        add_reservation(alice, room, BASE, ReservationStatus.CANCELLED)

        assert store.find_overlapping(room.id, BASE, BASE + timedelta(hours=1)) == []
        assert len(store.find_overlapping(room.id, BASE, BASE + timedelta(hours=1), ReservationStatus.CANCELLED)) == 1

    def test_exclude_id(self, store, add_reservation, alice, room):
        existing = add_reservation(alice, room, BASE)

        assert store.find_overlapping(room.id, BASE, BASE + timedelta(hours=1), exclude_id=existing.id) == []

    def test_other_room_is_ignored(self, store, add_reservation, alice, room, make_room):
        other = make_room("Sala Creativa", 12)
        add_reservation(alice, other, BASE)

        assert store.find_overlapping(room.id, BASE, BASE + timedelta(hours=1)) == []


class TestAdjacency:
    def test_reservation_ending_at_new_start(self, store, add_reservation, alice, room):
        add_reservation(alice, room, BASE)

        found = store.find_adjacent(alice.id, BASE + timedelta(hours=1), BASE + timedelta(hours=2))

        assert len(found) == 1

    def test_reservation_starting_at_new_end(self, store, add_reservation, alice, room, make_room):
        other = make_room("Sala Privada", 4)
        add_reservation(alice, other, BASE)

        found = store.find_adjacent(alice.id, BASE - timedelta(hours=1), BASE)

        assert len(found) == 1

    def test_other_users_are_ignored(self, store, add_reservation, alice, bob, room):
        add_reservation(bob, room, BASE)

        assert store.find_adjacent(alice.id, BASE + timedelta(hours=1), BASE + timedelta(hours=2)) == []

    def test_gap_is_not_adjacent(self, store, add_reservation, alice, room):
        add_reservation(alice, room, BASE)

        assert store.find_adjacent(alice.id, BASE + timedelta(hours=2), BASE + timedelta(hours=3)) == []

    def test_excluded_reservation_is_ignored(self, store, add_reservation, alice, room):
        existing = add_reservation(alice, room, BASE)

        found = store.find_adjacent(
            alice.id, BASE + timedelta(hours=1), BASE + timedelta(hours=2), exclude_id=existing.id
        )

        assert found == []


class TestHoursInWindow:
    def test_sums_confirmed_hours_in_window(self, store, add_reservation, alice, room):
        add_reservation(alice, room, BASE)
        add_reservation(alice, room, BASE + timedelta(days=1))
        add_reservation(alice, room, BASE + timedelta(days=2), ReservationStatus.CANCELLED)

        total = store.sum_hours_in_window(alice.id, datetime(2030, 1, 7), datetime(2030, 1, 14))

        assert total == Decimal("2")

    def test_window_end_is_exclusive(self, store, add_reservation, alice, room):
        add_reservation(alice, room, datetime(2030, 1, 14, 0, 0))

        assert store.sum_hours_in_window(alice.id, datetime(2030, 1, 7), datetime(2030, 1, 14)) == 0

    def test_empty_window_is_zero(self, store, alice):
        assert store.sum_hours_in_window(alice.id, datetime(2030, 1, 7), datetime(2030, 1, 14)) == Decimal("0")

    def test_excluded_reservation_is_not_counted(self, store, add_reservation, alice, room):
        moving = add_reservation(alice, room, BASE)
        add_reservation(alice, room, BASE + timedelta(days=1))

        total = store.sum_hours_in_window(
            alice.id, datetime(2030, 1, 7), datetime(2030, 1, 14), exclude_id=moving.id
        )

        assert total == Decimal("1")


class TestConstraints:
    def test_second_confirmed_reservation_for_slot_is_refused(self, store, add_reservation, alice, bob, room):
        add_reservation(alice, room, BASE)

        with pytest.raises(SlotTakenError):
            add_reservation(bob, room, BASE)

    def test_cancelled_rows_do_not_hold_the_slot(self, store, add_reservation, alice, bob, room):
        add_reservation(alice, room, BASE, ReservationStatus.CANCELLED)

        reservation = add_reservation(bob, room, BASE)

        assert reservation.status == ReservationStatus.CONFIRMED

    def test_update_status(self, store, add_reservation, alice, room):
        reservation = add_reservation(alice, room, BASE)

        updated = store.update_status(reservation, ReservationStatus.CANCELLED)

        assert store.find_by_id(updated.id).status == ReservationStatus.CANCELLED

    def test_find_by_user_orders_newest_first(self, store, add_reservation, alice, bob, room):
        add_reservation(alice, room, BASE)
        add_reservation(alice, room, BASE + timedelta(days=1))
        add_reservation(bob, room, BASE + timedelta(hours=2))

        found = store.find_by_user(alice.id)

        assert [r.start_time for r in found] == [BASE + timedelta(days=1), BASE]
        assert len(store.find_all()) == 3
