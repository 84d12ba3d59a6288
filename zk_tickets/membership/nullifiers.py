"""
Nullifier ledger: per-context record of consumed nullifier hashes.

Records are never deleted. ``mark_used`` is an atomic check-and-insert, so
two concurrent callers with the same hash cannot both succeed.
"""

from __future__ import annotations

import logging
import threading
from typing import AbstractSet, Dict, Iterable, Set, Tuple

from .exceptions import AlreadyUsedError
from .field import FieldElement, require_field_element
from .locks import KeyedLock

logger = logging.getLogger(__name__)


class NullifierLedger:
    """
    Per-context sets of used nullifier hashes.

    Example:
        >>> ledger = NullifierLedger()
        >>> ledger.mark_used(1, nullifier_hash)
        >>> ledger.is_used(1, nullifier_hash)
        True
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._used: Dict[int, Set[FieldElement]] = {}
        self._context_locks = KeyedLock()

    def is_used(self, context_id: int, nullifier_hash: FieldElement) -> bool:
        require_field_element(context_id, "context_id")
        require_field_element(nullifier_hash, "nullifier_hash")
        with self._context_locks.hold(context_id):
            return nullifier_hash in self._peek(context_id)

    def mark_used(self, context_id: int, nullifier_hash: FieldElement) -> None:
        """
        Record ``nullifier_hash`` as consumed for ``context_id``.

        Raises:
            AlreadyUsedError: If it was already recorded
        """
        require_field_element(context_id, "context_id")
        require_field_element(nullifier_hash, "nullifier_hash")
        with self._context_locks.hold(context_id):
            bucket = self._bucket(context_id)
            if nullifier_hash in bucket:
                raise AlreadyUsedError(
                    f"nullifier already used in context {context_id}"
                )
            bucket.add(nullifier_hash)
        logger.debug("context %d: nullifier recorded", context_id)

    def used_count(self, context_id: int) -> int:
        with self._context_locks.hold(context_id):
            return len(self._peek(context_id))

    def used_nullifiers(self, context_id: int) -> Tuple[FieldElement, ...]:
        with self._context_locks.hold(context_id):
            return tuple(sorted(self._peek(context_id)))

    def context_ids(self) -> Tuple[int, ...]:
        with self._guard:
            return tuple(sorted(key for key, bucket in self._used.items() if bucket))

    def _restore(self, context_id: int, nullifier_hashes: Iterable[FieldElement]) -> None:
        require_field_element(context_id, "context_id")
        values = [
            require_field_element(value, "nullifier_hash") for value in nullifier_hashes
        ]
        with self._context_locks.hold(context_id):
            self._bucket(context_id).update(values)

    def _peek(self, context_id: int) -> AbstractSet[FieldElement]:
        with self._guard:
            return self._used.get(context_id, frozenset())

    def _bucket(self, context_id: int) -> Set[FieldElement]:
        with self._guard:
            return self._used.setdefault(context_id, set())
