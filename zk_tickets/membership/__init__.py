"""Public API for zk_tickets.membership."""

from __future__ import annotations

from .coordinator import VerificationCoordinator, compute_scope
from .events import AccessGranted, GroupCreated, GroupFrozen, MemberAdded
from .exceptions import (
    AlreadyFrozenError,
    AlreadyInitializedError,
    AlreadyUsedError,
    ConfigurationError,
    DuplicateUseError,
    GroupNotInitializedError,
    GroupNotReadyError,
    InvalidProofError,
    PersistenceError,
    TicketingError,
    UnauthorizedError,
    ValidationError,
    VerifierError,
)
from .factory import get_verifier
from .feature_flags import get_verifier_type, set_verifier_type
from .field import HashPrimitive, Sha256FieldHash, hash_to_field
from .identity import (
    Identity,
    compute_identity_commitment,
    compute_leaf,
    compute_nullifier_hash,
)
from .interfaces import Verifier
from .merkle import LeanIMT, MerkleProof, compute_root, proof_for_index, verify_proof
from .nullifiers import NullifierLedger
from .registry import GroupRegistry, GroupState
from .state import dump_state, load_state, load_state_file, save_state_file
from .types import AccessRequest, PublicSignals, decode_request, encode_request

__all__ = [
    "AccessGranted",
    "AccessRequest",
    "AlreadyFrozenError",
    "AlreadyInitializedError",
    "AlreadyUsedError",
    "ConfigurationError",
    "DuplicateUseError",
    "GroupCreated",
    "GroupFrozen",
    "GroupNotInitializedError",
    "GroupNotReadyError",
    "GroupRegistry",
    "GroupState",
    "HashPrimitive",
    "Identity",
    "InvalidProofError",
    "PersistenceError",
    "LeanIMT",
    "MemberAdded",
    "MerkleProof",
    "NullifierLedger",
    "PublicSignals",
    "Sha256FieldHash",
    "TicketingError",
    "UnauthorizedError",
    "ValidationError",
    "VerificationCoordinator",
    "Verifier",
    "VerifierError",
    "compute_identity_commitment",
    "compute_leaf",
    "compute_nullifier_hash",
    "compute_root",
    "compute_scope",
    "decode_request",
    "dump_state",
    "encode_request",
    "get_verifier",
    "get_verifier_type",
    "hash_to_field",
    "load_state",
    "load_state_file",
    "proof_for_index",
    "save_state_file",
    "set_verifier_type",
    "verify_proof",
    "TransparentVerifier",
    "SnarkVerifier",
]

_LAZY_EXPORTS = {
    "TransparentVerifier": "adapters.transparent",
    "SnarkVerifier": "snark.backend",
}


def __getattr__(name: str):
    if name in _LAZY_EXPORTS:
        from importlib import import_module

        module = import_module(f"{__name__}.{_LAZY_EXPORTS[name]}")
        value = getattr(module, name)
        globals()[name] = value
        return value
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
