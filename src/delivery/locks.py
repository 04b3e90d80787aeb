"""Per-delivery write serialization.

Webhooks, polls and seller actions can target the same delivery at the
same time. Every command that mutates a delivery is processed while
holding that delivery's lock, so its read-modify-write runs alone.
"""

import threading
from contextlib import contextmanager

from protean.utils.globals import current_domain


class KeyedLock:
    """A lock per key; entries are dropped once no thread holds or awaits them."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, list] = {}  # key -> [lock, refcount]

    @contextmanager
    def hold(self, key: str):
        key = str(key)
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


delivery_locks = KeyedLock()


def process_serialized(key: str, command):
    """Process ``command`` while holding the lock for delivery ``key``."""
    with delivery_locks.hold(key):
        return current_domain.process(command, asynchronous=False)
