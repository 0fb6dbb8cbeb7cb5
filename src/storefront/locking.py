"""Keyed in-process locks.

Used to serialize check-and-set sections per key (one order, one external
event id) while unrelated keys proceed in parallel. Entries are reference
counted and dropped when no holder or waiter remains.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class KeyedLocks:
    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._users: dict[str, int] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._users[key] = self._users.get(key, 0) + 1
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._users[key] -= 1
                if self._users[key] == 0:
                    del self._users[key]
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


# Serializes state check-and-set per order id.
order_locks = KeyedLocks()

# Serializes insert-if-absent per external event key.
event_locks = KeyedLocks()
