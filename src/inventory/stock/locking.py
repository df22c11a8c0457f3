"""Per-record mutual exclusion.

All mutations of one inventory record are serialized through a lock keyed
by the record id. Acquisition is bounded: a caller that cannot get the lock
in time gets ``Contended`` instead of waiting forever. Locks are re-entrant
so a thread already holding a record can dispatch nested work for it.
Records are never locked in pairs, so lock ordering cannot deadlock.
"""

import os
import threading
from contextlib import contextmanager

import structlog

from inventory.stock.errors import Contended

logger = structlog.get_logger(__name__)

DEFAULT_LOCK_TIMEOUT = 5.0


def configured_lock_timeout() -> float:
    return float(os.environ.get("INVENTORY_LOCK_TIMEOUT", DEFAULT_LOCK_TIMEOUT))


class RecordLocks:
    """Registry of one re-entrant lock per inventory record.

    A lock lives only while some thread holds or waits for it, so keys for
    records nobody is touching (and the ``sku:`` keys used while creating
    records) do not pile up.
    """

    def __init__(self, timeout: float | None = None):
        self.timeout = configured_lock_timeout() if timeout is None else timeout
        self._registry_lock = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}
        self._users: dict[str, int] = {}

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)

    def _checkout(self, record_id: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(record_id)
            if lock is None:
                lock = self._locks[record_id] = threading.RLock()
            self._users[record_id] = self._users.get(record_id, 0) + 1
            return lock

    def _checkin(self, record_id: str) -> None:
        with self._registry_lock:
            self._users[record_id] -= 1
            if not self._users[record_id]:
                del self._users[record_id]
                del self._locks[record_id]

    @contextmanager
    def hold(self, record_id, timeout: float | None = None):
        """Hold the record's lock for the duration of the block."""
        record_id = str(record_id)
        wait = self.timeout if timeout is None else timeout
        lock = self._checkout(record_id)
        try:
            if not lock.acquire(timeout=wait):
                logger.warning("Inventory record lock contended", inventory_record_id=record_id, timeout=wait)
                raise Contended(f"Inventory record {record_id} is busy, try again")
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(record_id)


_locks_instance = None


def get_record_locks() -> RecordLocks:
    """Return the process-wide lock registry (singleton)."""
    global _locks_instance
    if _locks_instance is None:
        _locks_instance = RecordLocks()
    return _locks_instance


def reset_record_locks():
    global _locks_instance
    _locks_instance = None
