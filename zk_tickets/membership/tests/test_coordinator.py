"""Unit tests for the verification coordinator."""

from __future__ import annotations

import pytest

from zk_tickets.membership.adapters.transparent import (
    TransparentVerifier,
    build_transparent_proof,
)
from zk_tickets.membership.coordinator import VerificationCoordinator, compute_scope
from zk_tickets.membership.events import AccessGranted
from zk_tickets.membership.exceptions import (
    ConfigurationError,
    DuplicateUseError,
    GroupNotInitializedError,
    GroupNotReadyError,
    InvalidProofError,
    MalformedRequestError,
    ValidationError,
    VerifierError,
)
from zk_tickets.membership.field import get_default_hasher, hash_to_field
from zk_tickets.membership.identity import Identity
from zk_tickets.membership.nullifiers import NullifierLedger
from zk_tickets.membership.registry import GroupRegistry
from zk_tickets.membership.types import AccessRequest, PublicSignals

ADMIN = "organizer"
CONTEXT = 42
ATTRIBUTE = 1


class RecordingVerifier:
    def __init__(self, result=True):
        self.result = result
        self.calls = []

    def verify(self, group_id, signals, proof):
        self.calls.append((group_id, signals, proof))
        return self.result


class ExplodingVerifier:
    def verify(self, group_id, signals, proof):
        raise RuntimeError("backend crashed")


def _setup(verifier, members=3, freeze=True):
    registry = GroupRegistry()
    ledger = NullifierLedger()
    identities = [
        Identity(nullifier_secret=1000 + i, trapdoor_secret=2000 + i)
        for i in range(members)
    ]
    registry.create_group(CONTEXT, ADMIN)
    if identities:
        registry.add_members(
            CONTEXT, [member.leaf(ATTRIBUTE) for member in identities], caller=ADMIN
        )
    if freeze:
        registry.freeze_group(CONTEXT, caller=ADMIN)
    coordinator = VerificationCoordinator(
        registry, ledger, verifier, coordinator_id="gate-1"
    )
    return coordinator, identities


def _request(coordinator, identity, index, signal=7, context_id=CONTEXT):
    registry = coordinator.registry
    proof = registry.merkle_proof(context_id, index)
    nullifier_hash, blob = build_transparent_proof(
        identity,
        ATTRIBUTE,
        proof,
        group_id=registry.group_id_of(context_id),
        scope=coordinator.scope_for(context_id),
        signal=signal,
    )
    return AccessRequest(
        context_id=context_id, signal=signal, nullifier_hash=nullifier_hash, proof=blob
    )


class TestScope:
    def test_scope_formula(self):
        hasher = get_default_hasher()
        expected = hasher.hash(
            [hash_to_field(b"ZK_CTX"), hash_to_field("gate-1"), CONTEXT]
        )
        assert compute_scope("gate-1", CONTEXT, hasher) == expected

    def test_scope_binds_coordinator_and_context(self):
        coordinator, _ = _setup(RecordingVerifier())
        other = VerificationCoordinator(
            coordinator.registry,
            coordinator.ledger,
            RecordingVerifier(),
            coordinator_id="gate-2",
        )
        assert coordinator.scope_for(CONTEXT) != other.scope_for(CONTEXT)
        assert coordinator.scope_for(CONTEXT) != coordinator.scope_for(CONTEXT + 1)

    def test_protocol_tag_changes_scope(self):
        coordinator, _ = _setup(RecordingVerifier())
        tagged = VerificationCoordinator(
            coordinator.registry,
            coordinator.ledger,
            RecordingVerifier(),
            coordinator_id="gate-1",
            protocol_tag=b"OTHER",
        )
        assert tagged.scope_for(CONTEXT) != coordinator.scope_for(CONTEXT)


class TestConstruction:
    def test_rejects_non_verifier(self):
        registry, ledger = GroupRegistry(), NullifierLedger()
        with pytest.raises(ConfigurationError):
            VerificationCoordinator(registry, ledger, object(), coordinator_id="x")

    def test_rejects_empty_coordinator_id(self):
        registry, ledger = GroupRegistry(), NullifierLedger()
        with pytest.raises(ValidationError):
            VerificationCoordinator(
                registry, ledger, RecordingVerifier(), coordinator_id=""
            )


class TestVerifyAccess:
    def test_granted_then_duplicate(self):
        coordinator, identities = _setup(TransparentVerifier())
        request = _request(coordinator, identities[1], 1)

        granted = coordinator.verify_access(request)
        assert granted == AccessGranted(
            context_id=CONTEXT, nullifier_hash=request.nullifier_hash, signal=7
        )
        assert coordinator.ledger.is_used(CONTEXT, request.nullifier_hash) is True

        with pytest.raises(DuplicateUseError):
            coordinator.verify_access(request)

    def test_same_identity_new_signal_is_still_duplicate(self):
        coordinator, identities = _setup(TransparentVerifier())
        coordinator.verify_access(_request(coordinator, identities[0], 0, signal=1))
        with pytest.raises(DuplicateUseError):
            coordinator.verify_access(_request(coordinator, identities[0], 0, signal=2))

    def test_each_member_gets_one_use(self):
        coordinator, identities = _setup(TransparentVerifier(), members=5)
        for index, member in enumerate(identities):
            coordinator.verify_access(_request(coordinator, member, index))
        assert coordinator.ledger.used_count(CONTEXT) == 5

    def test_invalid_proof_consumes_nothing(self):
        verifier = RecordingVerifier(result=False)
        coordinator, _ = _setup(verifier)
        request = AccessRequest(CONTEXT, 7, 12345, b"proof")

        with pytest.raises(InvalidProofError):
            coordinator.verify_access(request)
        assert coordinator.ledger.is_used(CONTEXT, 12345) is False

        verifier.result = True
        coordinator.verify_access(request)
        assert coordinator.ledger.is_used(CONTEXT, 12345) is True

    def test_verifier_receives_canonical_signals(self):
        verifier = RecordingVerifier()
        coordinator, _ = _setup(verifier)
        coordinator.verify_access(AccessRequest(CONTEXT, 7, 12345, b"proof"))
        ((group_id, signals, proof),) = verifier.calls
        assert group_id == 0
        assert signals == PublicSignals(
            root=coordinator.registry.get_active_root(CONTEXT),
            nullifier_hash=12345,
            signal=7,
            scope=coordinator.scope_for(CONTEXT),
        )
        assert proof == b"proof"

    def test_unfrozen_group_not_ready(self):
        verifier = RecordingVerifier()
        coordinator, _ = _setup(verifier, freeze=False)
        with pytest.raises(GroupNotReadyError):
            coordinator.verify_access(AccessRequest(CONTEXT, 7, 1, b"proof"))
        assert verifier.calls == []

    def test_unknown_context(self):
        coordinator, _ = _setup(RecordingVerifier())
        with pytest.raises(GroupNotInitializedError):
            coordinator.verify_access(AccessRequest(CONTEXT + 1, 7, 1, b"proof"))

    def test_rejected_submissions_leave_ledger_empty(self):
        coordinator, _ = _setup(RecordingVerifier(), freeze=False)
        for context_id in range(CONTEXT + 1, CONTEXT + 201):
            with pytest.raises(GroupNotInitializedError):
                coordinator.verify_access(AccessRequest(context_id, 7, 1, b"proof"))
        with pytest.raises(GroupNotReadyError):
            coordinator.verify_access(AccessRequest(CONTEXT, 7, 1, b"proof"))
        assert coordinator.ledger._used == {}
        assert coordinator.ledger.context_ids() == ()

    def test_duplicate_checked_before_verifier(self):
        verifier = RecordingVerifier()
        coordinator, _ = _setup(verifier)
        coordinator.ledger.mark_used(CONTEXT, 555)
        with pytest.raises(DuplicateUseError):
            coordinator.verify_access(AccessRequest(CONTEXT, 7, 555, b"proof"))
        assert verifier.calls == []

    def test_verifier_exception_is_wrapped(self):
        coordinator, _ = _setup(ExplodingVerifier())
        with pytest.raises(VerifierError):
            coordinator.verify_access(AccessRequest(CONTEXT, 7, 1, b"proof"))
        assert coordinator.ledger.used_count(CONTEXT) == 0

    def test_malformed_request(self):
        coordinator, _ = _setup(RecordingVerifier())
        with pytest.raises(MalformedRequestError):
            coordinator.verify_access(AccessRequest(CONTEXT, 7, 1, b""))
        with pytest.raises(ValidationError):
            coordinator.verify_access("not a request")

    def test_proof_for_other_coordinator_rejected(self):
        coordinator, identities = _setup(TransparentVerifier())
        other = VerificationCoordinator(
            coordinator.registry,
            NullifierLedger(),
            TransparentVerifier(),
            coordinator_id="gate-2",
        )
        request = _request(other, identities[0], 0)
        with pytest.raises(InvalidProofError):
            coordinator.verify_access(request)

    def test_proof_against_other_root_rejected(self):
        coordinator, identities = _setup(TransparentVerifier())
        registry = coordinator.registry
        registry.create_group(CONTEXT + 1, ADMIN)
        registry.add_members(
            CONTEXT + 1,
            [identities[0].leaf(ATTRIBUTE), identities[1].leaf(ATTRIBUTE)],
            caller=ADMIN,
        )
        registry.freeze_group(CONTEXT + 1, caller=ADMIN)

        forged = _request(coordinator, identities[0], 0, context_id=CONTEXT + 1)
        moved = AccessRequest(
            context_id=CONTEXT,
            signal=forged.signal,
            nullifier_hash=forged.nullifier_hash,
            proof=forged.proof,
        )
        with pytest.raises(InvalidProofError):
            coordinator.verify_access(moved)


class TestPhases:
    def test_check_submission_is_read_only(self):
        coordinator, _ = _setup(RecordingVerifier())
        request = AccessRequest(CONTEXT, 7, 99, b"proof")
        group_id, signals = coordinator.check_submission(request)
        assert group_id == 0
        assert signals.nullifier_hash == 99
        assert coordinator.ledger.used_count(CONTEXT) == 0

    def test_finalize_lost_race_is_duplicate(self):
        coordinator, _ = _setup(RecordingVerifier())
        request = AccessRequest(CONTEXT, 7, 99, b"proof")
        coordinator.check_submission(request)
        coordinator.ledger.mark_used(CONTEXT, 99)
        with pytest.raises(DuplicateUseError):
            coordinator.finalize(request, True)

    def test_finalize_false_is_invalid(self):
        coordinator, _ = _setup(RecordingVerifier())
        with pytest.raises(InvalidProofError):
            coordinator.finalize(AccessRequest(CONTEXT, 7, 99, b"proof"), False)
        assert coordinator.ledger.used_count(CONTEXT) == 0


def test_access_granted_listeners():
    coordinator, identities = _setup(TransparentVerifier())
    events = []
    coordinator.subscribe(events.append)
    granted = coordinator.verify_access(_request(coordinator, identities[0], 0))
    assert events == [granted]
