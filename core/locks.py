"""
Single-writer locks per (resource, day).

The scheduling service holds the lock for every calendar key it mutates
across validate -> conflict check -> commit. The store's atomic write is
still the final guard; these locks keep concurrent writers from racing to
it and give callers a clean StorageUnavailable on contention timeouts.
"""

import logging
import threading
from contextlib import AbstractContextManager, ExitStack, contextmanager
from datetime import date
from typing import Iterator, Protocol

from redis.exceptions import LockError, RedisError

from clients.valkey_client import ValkeyClient
from core.errors import StorageUnavailable

logger = logging.getLogger(__name__)

SlotKey = tuple[str, date]


class SlotLocks(Protocol):
    def hold(self, key: SlotKey) -> AbstractContextManager[None]: ...


def lock_name(key: SlotKey) -> str:
    resource, day = key
    return f"booking-lock:{resource}:{day.isoformat()}"


@contextmanager
def hold_all(locks: SlotLocks, keys: list[SlotKey]) -> Iterator[None]:
    """
    Hold several slot locks at once.

    Keys are de-duplicated and acquired in sorted order so two writers
    locking the same pair can never deadlock.
    """
    with ExitStack() as stack:
        for key in sorted(set(keys), key=lambda k: (k[0], k[1])):
            stack.enter_context(locks.hold(key))
        yield


class LocalSlotLocks:
    """
    Per-key threading locks for single-process deployments.

    A key's lock lives only while some thread holds or waits on it.
    """

    def __init__(self, timeout_seconds: float = 10.0):
        self.timeout_seconds = timeout_seconds
        self._guard = threading.Lock()
        self._locks: dict[SlotKey, threading.Lock] = {}
        self._users: dict[SlotKey, int] = {}

    def _checkout(self, key: SlotKey) -> threading.Lock:
        with self._guard:
            if key not in self._locks:
                self._locks[key] = threading.Lock()
                self._users[key] = 0
            self._users[key] += 1
            return self._locks[key]

    def _checkin(self, key: SlotKey) -> None:
        with self._guard:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    @contextmanager
    def hold(self, key: SlotKey) -> Iterator[None]:
        lock = self._checkout(key)
        try:
            if not lock.acquire(timeout=self.timeout_seconds):
                raise StorageUnavailable(f"Timed out waiting for calendar lock {lock_name(key)}")
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(key)


class ValkeySlotLocks:
    """Distributed per-key locks backed by Valkey for multi-process deployments."""

    def __init__(self, valkey: ValkeyClient, timeout_seconds: float = 10.0, lease_seconds: float = 30.0):
        self.valkey = valkey
        self.timeout_seconds = timeout_seconds
        self.lease_seconds = lease_seconds

    @contextmanager
    def hold(self, key: SlotKey) -> Iterator[None]:
        name = lock_name(key)
        lock = self.valkey.lock(name, timeout=self.lease_seconds)

        try:
            acquired = lock.acquire(blocking_timeout=self.timeout_seconds)
        except RedisError as e:
            raise StorageUnavailable(f"Lock backend unavailable for {name}: {e}")
        if not acquired:
            raise StorageUnavailable(f"Timed out waiting for calendar lock {name}")

        try:
            yield
        finally:
            try:
                lock.release()
            except LockError:
                # Lease expired while we held it; the store commit still guarded the write
                logger.warning("Calendar lock %s expired before release", name)
