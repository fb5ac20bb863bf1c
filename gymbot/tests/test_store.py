from __future__ import annotations

import logging
import threading
from unittest.mock import patch

import pytest

from gymbot.domain import Booking, NotFoundError, SlotUnavailableError
from gymbot.state_file import load_state
from gymbot.store import GymStore, initialize


@pytest.fixture
def store(tmp_path) -> GymStore:
    return initialize(str(tmp_path / "state.json"))


def test_resolve_user_creates_unpaid_user_once(store: GymStore) -> None:
    first = store.resolve_user(1, "Ann")
    second = store.resolve_user(1, "Другое имя")

    assert first.has_paid is False
    assert second.name == "Ann"
    assert len(store.snapshot().users) == 1


def test_grant_payment_entitlement_is_idempotent(store: GymStore) -> None:
    store.resolve_user(1, "Ann")

    assert store.grant_payment_entitlement(1).has_paid is True
    assert store.grant_payment_entitlement(1).has_paid is True
    assert store.get_user(1).has_paid is True


def test_grant_payment_entitlement_for_unknown_user(store: GymStore) -> None:
    with pytest.raises(NotFoundError):
        store.grant_payment_entitlement(404)


def test_snapshots_are_detached_from_store(store: GymStore) -> None:
    trainers = store.list_trainers()
    trainers[0].slots.clear()
    trainer = store.get_trainer(2)
    trainer.slots.clear()
    user = store.resolve_user(1, "Ann")
    user.has_paid = True

    assert len(store.get_trainer(1).slots) == 13
    assert len(store.get_trainer(2).slots) == 13
    assert store.get_user(1).has_paid is False


def test_get_trainer_miss_returns_none(store: GymStore) -> None:
    assert store.get_trainer(42) is None


def test_book_and_flush_survive_restart(tmp_path) -> None:
    path = str(tmp_path / "state.json")
    store = initialize(path)
    store.resolve_user(1, "Ann")
    store.grant_payment_entitlement(1)

    booking = store.book(1, 3, "18:00")
    assert isinstance(booking, Booking)
    assert store.flush() is True

    restarted = initialize(path)
    assert restarted.user_bookings(1) == [booking]
    assert "18:00" not in restarted.get_trainer(3).slots
    assert restarted.get_user(1).has_paid is True
    assert isinstance(restarted.book(2, 3, "18:00"), SlotUnavailableError)


def test_flush_failure_is_logged_and_keeps_booking(store: GymStore, caplog: pytest.LogCaptureFixture) -> None:
    booking = store.book(1, 1, "08:00")

    with (
        patch("gymbot.store.write_state_dict", side_effect=OSError("disk full")),
        caplog.at_level(logging.ERROR, logger="gymbot.store"),
    ):
        assert store.flush() is False

    assert "Failed to save state" in caplog.text
    assert store.user_bookings(1) == [booking]


def test_concurrent_bookings_of_one_slot_have_single_winner(store: GymStore) -> None:
    results: list[object] = []
    results_lock = threading.Lock()
    barrier = threading.Barrier(16)

    def attempt(user_id: int) -> None:
        barrier.wait()
        r = store.book(user_id, 5, "13:00")
        with results_lock:
            results.append(r)

    threads = [threading.Thread(target=attempt, args=(uid,)) for uid in range(1, 17)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sum(isinstance(r, Booking) for r in results) == 1
    assert sum(isinstance(r, SlotUnavailableError) for r in results) == 15
    assert "13:00" not in store.get_trainer(5).slots


def test_concurrent_bookings_of_one_user_respect_cap(store: GymStore) -> None:
    slots = ["08:00", "09:00", "10:00", "11:00", "12:00", "13:00"]
    threads = [threading.Thread(target=store.book, args=(7, 2, s)) for s in slots]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(store.user_bookings(7)) == 3
    assert len(store.get_trainer(2).slots) == 10


def test_concurrent_flushes_write_a_consistent_record(store: GymStore) -> None:
    def book_and_flush(user_id: int) -> None:
        store.book(user_id, 4, f"{7 + user_id:02d}:00")
        store.flush()

    threads = [threading.Thread(target=book_and_flush, args=(uid,)) for uid in range(1, 14)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    store.flush()

    on_disk = load_state(store.path)
    assert on_disk == store.snapshot()
    assert len(on_disk.bookings) == 13
