"""Tests for per-record locking."""

import threading
import time

import pytest
from inventory.domain import inventory
from inventory.stock.errors import Contended, InsufficientStock
from inventory.stock.locking import (
    DEFAULT_LOCK_TIMEOUT,
    RecordLocks,
    configured_lock_timeout,
    get_record_locks,
    reset_record_locks,
)
from inventory.stock.record import InventoryRecord
from protean import current_domain


def _hold_in_background(locks, record_id):
    """Grab the lock from another thread and keep it until released."""
    acquired = threading.Event()
    release = threading.Event()

    def holder():
        with locks.hold(record_id):
            acquired.set()
            release.wait(timeout=5)

    thread = threading.Thread(target=holder)
    thread.start()
    acquired.wait(timeout=5)
    return release, thread


class TestRecordLocks:
    def test_lock_is_reentrant(self):
        locks = RecordLocks(timeout=0.05)
        with locks.hold("rec-1"):
            with locks.hold("rec-1"):
                pass

    def test_contended_when_another_thread_holds_the_record(self):
        locks = RecordLocks(timeout=0.05)
        release, thread = _hold_in_background(locks, "rec-1")
        try:
            with pytest.raises(Contended):
                with locks.hold("rec-1"):
                    pass
        finally:
            release.set()
            thread.join()

    def test_other_records_are_not_blocked(self):
        locks = RecordLocks(timeout=0.05)
        release, thread = _hold_in_background(locks, "rec-1")
        try:
            with locks.hold("rec-2"):
                pass
        finally:
            release.set()
            thread.join()

    def test_lock_is_released_after_an_error(self):
        locks = RecordLocks(timeout=0.05)
        with pytest.raises(RuntimeError):
            with locks.hold("rec-1"):
                raise RuntimeError("boom")

        acquired = []

        def attempt():
            with locks.hold("rec-1"):
                acquired.append(True)

        thread = threading.Thread(target=attempt)
        thread.start()
        thread.join()
        assert acquired == [True]

    def test_per_call_timeout_override(self):
        locks = RecordLocks(timeout=30)
        release, thread = _hold_in_background(locks, "rec-1")
        try:
            with pytest.raises(Contended):
                with locks.hold("rec-1", timeout=0.01):
                    pass
        finally:
            release.set()
            thread.join()

    def test_record_ids_are_normalized_to_strings(self):
        locks = RecordLocks(timeout=0.05)
        with locks.hold(42):
            with locks.hold("42"):
                pass

    def test_idle_locks_are_dropped(self):
        locks = RecordLocks(timeout=0.05)
        with locks.hold("rec-1"):
            with locks.hold("sku:LAMP-1"):
                assert len(locks) == 2
        assert len(locks) == 0

    def test_lock_is_kept_while_another_thread_holds_it(self):
        locks = RecordLocks(timeout=0.05)
        release, thread = _hold_in_background(locks, "rec-1")
        try:
            with pytest.raises(Contended):
                with locks.hold("rec-1"):
                    pass
            assert len(locks) == 1
        finally:
            release.set()
            thread.join()
        assert len(locks) == 0

    def test_waiting_thread_keeps_exclusion_after_the_holder_leaves(self):
        locks = RecordLocks(timeout=5)
        release_first, first = _hold_in_background(locks, "rec-1")
        second_in, release_second = threading.Event(), threading.Event()

        def second_holder():
            with locks.hold("rec-1"):
                second_in.set()
                release_second.wait(timeout=5)

        second = threading.Thread(target=second_holder)
        second.start()
        deadline = time.monotonic() + 5
        while locks._users.get("rec-1") != 2 and time.monotonic() < deadline:
            time.sleep(0.001)

        release_first.set()
        first.join()
        assert second_in.wait(timeout=5)
        try:
            with pytest.raises(Contended):
                with locks.hold("rec-1", timeout=0.05):
                    pass
        finally:
            release_second.set()
            second.join()
        assert len(locks) == 0


class TestLockConfiguration:
    def test_default_timeout(self, monkeypatch):
        monkeypatch.delenv("INVENTORY_LOCK_TIMEOUT", raising=False)
        assert configured_lock_timeout() == DEFAULT_LOCK_TIMEOUT

    def test_timeout_from_environment(self, monkeypatch):
        monkeypatch.setenv("INVENTORY_LOCK_TIMEOUT", "0.5")
        assert RecordLocks().timeout == 0.5

    def test_registry_is_a_singleton(self):
        assert get_record_locks() is get_record_locks()
        first = get_record_locks()
        reset_record_locks()
        assert get_record_locks() is not first


class TestConcurrentReservations:
    def test_two_reservations_cannot_both_take_the_last_units(self):
        record = InventoryRecord.create(product_id="prod-001", sku="CHAIR-OAK", initial_quantity=10)
        current_domain.repository_for(InventoryRecord).add(record)
        record_id = record.id

        locks = RecordLocks(timeout=5)
        barrier = threading.Barrier(2)
        outcomes = []

        def reserve(order_id):
            with inventory.domain_context():
                barrier.wait(timeout=5)
                try:
                    with locks.hold(record_id):
                        repo = current_domain.repository_for(InventoryRecord)
                        loaded = repo.get(record_id)
                        loaded.reserve(8, order_id)
                        repo.add(loaded)
                    outcomes.append("reserved")
                except (InsufficientStock, Contended) as exc:
                    outcomes.append(type(exc).__name__)

        threads = [threading.Thread(target=reserve, args=(f"ord-{n}",)) for n in (1, 2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(outcomes) == ["InsufficientStock", "reserved"]

        stored = current_domain.repository_for(InventoryRecord).get(record_id)
        assert stored.reserved == 8
        assert stored.available == 2
        assert len(stored.active_reservations()) == 1
