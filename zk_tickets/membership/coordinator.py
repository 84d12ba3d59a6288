"""
Verification coordinator: replay-protected access checks.

Flow for one submission:

    1. nullifier already used?          -> DuplicateUseError
    2. active (frozen) root             -> GroupNotReadyError
    3. scope for this coordinator/context
    4. external Verifier.verify(...)
    5. verifier said no                 -> InvalidProofError, nothing recorded
    6. record nullifier, emit AccessGranted

Only step 6 mutates state. Steps 1-3 are exposed as ``check_submission`` and
5-6 as ``finalize`` so callers with their own scheduling (see
``zk_tickets.service``) can run the verifier elsewhere.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Tuple, Union

from .config import SCOPE_PROTOCOL_TAG
from .events import AccessGranted, ListenerSet
from .exceptions import (
    AlreadyUsedError,
    ConfigurationError,
    DuplicateUseError,
    InvalidProofError,
    ValidationError,
    VerifierError,
)
from .field import FieldElement, HashPrimitive, hash_to_field, require_field_element
from .interfaces import Verifier
from .locks import KeyedLock
from .nullifiers import NullifierLedger
from .registry import GroupRegistry
from .types import AccessRequest, PublicSignals

logger = logging.getLogger(__name__)


def compute_scope(
    coordinator_id: Union[bytes, str],
    context_id: int,
    hasher: HashPrimitive,
    protocol_tag: bytes = SCOPE_PROTOCOL_TAG,
) -> FieldElement:
    """scope = H(hash_to_field(tag), hash_to_field(coordinator_id), context_id)"""
    require_field_element(context_id, "context_id")
    return hasher.hash(
        [hash_to_field(protocol_tag), hash_to_field(coordinator_id), context_id]
    )


class VerificationCoordinator:
    """
    Gatekeeper combining the registry, the nullifier ledger and a verifier.

    Example:
        >>> coordinator = VerificationCoordinator(
        ...     registry, ledger, TransparentVerifier(), coordinator_id="venue-1"
        ... )
        >>> scope = coordinator.scope_for(context_id)
        >>> granted = coordinator.verify_access(request)
    """

    def __init__(
        self,
        registry: GroupRegistry,
        ledger: NullifierLedger,
        verifier: Verifier,
        *,
        coordinator_id: Union[bytes, str],
        protocol_tag: bytes = SCOPE_PROTOCOL_TAG,
        hasher: Optional[HashPrimitive] = None,
    ) -> None:
        if not isinstance(verifier, Verifier):
            raise ConfigurationError("verifier must provide verify(group_id, signals, proof)")
        if not isinstance(coordinator_id, (bytes, str)) or not coordinator_id:
            raise ValidationError("coordinator_id must be non-empty bytes or str")
        if not isinstance(protocol_tag, bytes) or not protocol_tag:
            raise ValidationError("protocol_tag must be non-empty bytes")

        self._registry = registry
        self._ledger = ledger
        self._verifier = verifier
        self._coordinator_id = coordinator_id
        self._protocol_tag = protocol_tag
        self._hasher = hasher if hasher is not None else registry.hasher
        self._submission_locks = KeyedLock()
        self._listeners = ListenerSet()

    @property
    def registry(self) -> GroupRegistry:
        return self._registry

    @property
    def ledger(self) -> NullifierLedger:
        return self._ledger

    @property
    def verifier(self) -> Verifier:
        return self._verifier

    @property
    def coordinator_id(self) -> Union[bytes, str]:
        return self._coordinator_id

    def subscribe(self, listener: Callable[[AccessGranted], None]) -> Callable[[], None]:
        return self._listeners.subscribe(listener)

    def scope_for(self, context_id: int) -> FieldElement:
        """Scope (external nullifier) that proofs for ``context_id`` must use."""
        return compute_scope(
            self._coordinator_id, context_id, self._hasher, self._protocol_tag
        )

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def check_submission(self, request: AccessRequest) -> Tuple[int, PublicSignals]:
        """
        Read-only pre-checks.

        Returns:
            (group_id, PublicSignals) to hand to the verifier

        Raises:
            DuplicateUseError: Nullifier already consumed in this context
            GroupNotInitializedError / GroupNotReadyError: No frozen root
        """
        if not isinstance(request, AccessRequest):
            raise ValidationError("request must be an AccessRequest")
        request.validate()

        if self._ledger.is_used(request.context_id, request.nullifier_hash):
            logger.warning(
                "context %d: rejected reused nullifier", request.context_id
            )
            raise DuplicateUseError(
                f"nullifier already used in context {request.context_id}"
            )

        root = self._registry.get_active_root(request.context_id)
        group_id = self._registry.group_id_of(request.context_id)
        signals = PublicSignals(
            root=root,
            nullifier_hash=request.nullifier_hash,
            signal=request.signal,
            scope=self.scope_for(request.context_id),
        )
        return group_id, signals

    def run_verifier(
        self, group_id: int, signals: PublicSignals, proof: bytes
    ) -> bool:
        """
        Call the external verifier.

        Raises:
            VerifierError: If the verifier itself failed
        """
        try:
            result = self._verifier.verify(group_id, signals, bytes(proof))
        except Exception as exc:
            logger.warning("verifier failed for group %d: %s", group_id, exc)
            raise VerifierError(f"verifier failed: {exc}") from exc
        return result is True

    def finalize(self, request: AccessRequest, verified: bool) -> AccessGranted:
        """
        Record the outcome of a verification.

        Raises:
            InvalidProofError: Verifier rejected the proof (nothing recorded)
            DuplicateUseError: Another submission consumed the nullifier first
        """
        if not verified:
            logger.warning("context %d: proof rejected", request.context_id)
            raise InvalidProofError(
                f"proof rejected for context {request.context_id}"
            )

        try:
            self._ledger.mark_used(request.context_id, request.nullifier_hash)
        except AlreadyUsedError as exc:
            logger.warning(
                "context %d: lost race for nullifier", request.context_id
            )
            raise DuplicateUseError(str(exc)) from exc

        granted = AccessGranted(
            context_id=request.context_id,
            nullifier_hash=request.nullifier_hash,
            signal=request.signal,
        )
        logger.info("context %d: access granted", request.context_id)
        self._listeners.emit(granted)
        return granted

    def verify_access(self, request: AccessRequest) -> AccessGranted:
        """
        Check a submission end to end.

        Of two concurrent submissions with the same nullifier exactly one is
        granted; the other fails DuplicateUseError.
        """
        if not isinstance(request, AccessRequest):
            raise ValidationError("request must be an AccessRequest")
        with self._submission_locks.hold(request.replay_key):
            group_id, signals = self.check_submission(request)
            verified = self.run_verifier(group_id, signals, request.proof)
            return self.finalize(request, verified)
