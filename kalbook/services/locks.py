"""Per-key asyncio locks serialising check-then-write sequences.

Nested holds take appointment keys first, then reschedule-request keys, then
slot keys. ``hold`` sorts the keys of a single call into the same order.
"""
from __future__ import annotations

import asyncio
import weakref
from contextlib import asynccontextmanager
from datetime import date
from typing import AsyncIterator, Hashable, Iterable


class KeyedLocks:
    def __init__(self) -> None:
        self._locks: "weakref.WeakValueDictionary[Hashable, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, *keys: Hashable) -> AsyncIterator[None]:
        """Acquire the locks for ``keys`` in a stable order."""

        locks = [self._lock_for(key) for key in _ordered(keys)]
        acquired = []
        try:
            for lock in locks:
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


def slot_key(worker_id: str, day: date) -> tuple:
    return ("slot", worker_id, day.isoformat())


def appointment_key(appointment_id: str) -> tuple:
    return ("appointment", appointment_id)


def reschedule_key(request_id: str) -> tuple:
    return ("reschedule", request_id)


def phone_key(phone: str) -> tuple:
    return ("customer-phone", phone)


def _ordered(keys: Iterable[Hashable]) -> list:
    return sorted(set(keys), key=repr)


_default_locks = KeyedLocks()


def default_locks() -> KeyedLocks:
    """Process-wide registry shared by every service instance."""

    return _default_locks
