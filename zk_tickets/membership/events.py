"""Events emitted after state changes commit."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, List

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]


@dataclass(frozen=True)
class GroupCreated:
    context_id: int
    group_id: int
    admin: str


@dataclass(frozen=True)
class MemberAdded:
    context_id: int
    index: int
    leaf: int
    root: int


@dataclass(frozen=True)
class GroupFrozen:
    context_id: int
    root: int
    size: int


@dataclass(frozen=True)
class AccessGranted:
    context_id: int
    nullifier_hash: int
    signal: int


class ListenerSet:
    """
    Fan events out to subscribers.

    A failing listener is logged and skipped; it never undoes the state
    change that produced the event.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        if not callable(listener):
            raise TypeError("listener must be callable")
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def emit(self, event: Any) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.warning(
                    "listener %r failed on %s", listener, type(event).__name__,
                    exc_info=True,
                )

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)
