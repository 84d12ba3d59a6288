"""
trio facade over VerificationCoordinator.

The verifier is the only slow step, so it runs in a worker thread. A
cancelled or timed-out verification is abandoned before ``finalize`` and
therefore never consumes the nullifier.

With a ``persist`` hook, a grant is only reported once the hook has returned.
If persisting fails the submission fails with PersistenceError; the
nullifier stays consumed in memory, so the failed grant cannot be retried
into a second success.
"""

from __future__ import annotations

import functools
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Dict, Hashable, Optional, Tuple

import trio

from ..membership.coordinator import VerificationCoordinator
from ..membership.events import AccessGranted
from ..membership.exceptions import PersistenceError, TicketingError, ValidationError
from ..membership.types import AccessRequest

logger = logging.getLogger(__name__)


class AsyncVerificationCoordinator:
    """
    Async access checks for trio applications.

    Example:
        >>> service = AsyncVerificationCoordinator(coordinator, persist=save)
        >>> granted = await service.verify_access(request, timeout=5)
    """

    def __init__(
        self,
        coordinator: VerificationCoordinator,
        *,
        persist: Optional[Callable[[], None]] = None,
    ) -> None:
        if not isinstance(coordinator, VerificationCoordinator):
            raise ValidationError("coordinator must be a VerificationCoordinator")
        if persist is not None and not callable(persist):
            raise ValidationError("persist must be callable")
        self._coordinator = coordinator
        self._persist = persist
        self._persist_lock = trio.Lock()
        self._locks: Dict[Hashable, Tuple[trio.Lock, int]] = {}

    @property
    def coordinator(self) -> VerificationCoordinator:
        return self._coordinator

    def pending_keys(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def _hold(self, key: Hashable) -> AsyncIterator[None]:
        lock, waiters = self._locks.get(key, (None, 0))
        if lock is None:
            lock = trio.Lock()
        self._locks[key] = (lock, waiters + 1)
        try:
            async with lock:
                yield
        finally:
            current, waiters = self._locks[key]
            if waiters <= 1:
                del self._locks[key]
            else:
                self._locks[key] = (current, waiters - 1)

    async def verify_access(
        self, request: AccessRequest, timeout: Optional[float] = None
    ) -> AccessGranted:
        """
        Check a submission without blocking the event loop.

        Raises:
            trio.TooSlowError: If ``timeout`` elapsed before the verifier answered
            PersistenceError: If the grant could not be made durable
            TicketingError: Same failures as the sync coordinator
        """
        if not isinstance(request, AccessRequest):
            raise ValidationError("request must be an AccessRequest")

        async with self._hold(request.replay_key):
            group_id, signals = self._coordinator.check_submission(request)
            run = functools.partial(
                self._coordinator.run_verifier, group_id, signals, request.proof
            )
            if timeout is None:
                verified = await trio.to_thread.run_sync(run, abandon_on_cancel=True)
            else:
                try:
                    with trio.fail_after(timeout):
                        verified = await trio.to_thread.run_sync(
                            run, abandon_on_cancel=True
                        )
                except trio.TooSlowError:
                    logger.warning(
                        "context %d: verification timed out after %ss",
                        request.context_id,
                        timeout,
                    )
                    raise
            granted = self._coordinator.finalize(request, verified)
            await self._save(request.context_id)
            return granted

    async def _save(self, context_id: int) -> None:
        if self._persist is None:
            return
        async with self._persist_lock:
            try:
                await trio.to_thread.run_sync(self._persist)
            except PersistenceError:
                raise
            except (TicketingError, OSError) as exc:
                logger.error("context %d: persisting grant failed: %s", context_id, exc)
                raise PersistenceError(f"grant not persisted: {exc}") from exc
