"""Per-key mutual exclusion for shared registries."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator, Tuple


class KeyedLock:
    """
    One lock per key, created on demand and dropped when no longer held.

    Operations on the same key are serialized; distinct keys never block
    each other.

    Example:
        >>> locks = KeyedLock()
        >>> with locks.hold(context_id):
        ...     mutate(context_id)
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, Tuple[threading.Lock, int]] = {}

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            lock, waiters = self._locks.get(key, (None, 0))
            if lock is None:
                lock = threading.Lock()
            self._locks[key] = (lock, waiters + 1)

        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                current, waiters = self._locks[key]
                if waiters <= 1:
                    del self._locks[key]
                else:
                    self._locks[key] = (current, waiters - 1)

    def active_keys(self) -> int:
        with self._guard:
            return len(self._locks)
