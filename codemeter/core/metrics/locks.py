"""Per-entity locks serializing recomputations that share files or symbols."""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

from codemeter.core.metrics.invalidation import LockKey


class KeyedLocks:
    """A lock per key, created on first use and dropped once nobody holds it.

    Recomputations over disjoint keys run in parallel. Keys are always
    acquired in sorted order.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[LockKey, tuple[threading.RLock, int]] = {}

    @contextmanager
    def holding(self, keys: Iterable[LockKey]) -> Iterator[None]:
        ordered = sorted(set(keys))
        with self._guard:
            locks = [self._checkout(key) for key in ordered]

        acquired: list[threading.RLock] = []
        try:
            for lock in locks:
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            with self._guard:
                for key in ordered:
                    self._checkin(key)

    def _checkout(self, key: LockKey) -> threading.RLock:
        entry = self._locks.get(key)
        lock, users = entry if entry is not None else (threading.RLock(), 0)
        self._locks[key] = (lock, users + 1)
        return lock

    def _checkin(self, key: LockKey) -> None:
        lock, users = self._locks[key]
        if users <= 1:
            del self._locks[key]
        else:
            self._locks[key] = (lock, users - 1)

    def __len__(self) -> int:
        return len(self._locks)
