"""
Common types for access verification.

This module provides:
1. PublicSignals - the public inputs a proof is checked against
2. AccessRequest - a submitted proof with its claimed nullifier and signal
3. CBOR encoding for requests (files, transports)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple

import cbor2

from .config import MAX_PROOF_BYTES, MAX_REQUEST_BYTES, REQUEST_VERSION
from .exceptions import FieldElementError, MalformedRequestError
from .field import FieldElement, require_field_element, to_bytes32

# ============================================================================
# PUBLIC SIGNALS
# ============================================================================


@dataclass(frozen=True)
class PublicSignals:
    """
    Public inputs of a membership proof.

    Canonical order is (root, nullifier_hash, signal, scope); the encoder,
    the prover and the external verifier all use this one layout.

    Example:
        >>> signals = PublicSignals(root=r, nullifier_hash=n, signal=1, scope=s)
        >>> blob = signals.to_bytes()  # 128 bytes
    """

    root: FieldElement
    nullifier_hash: FieldElement
    signal: FieldElement
    scope: FieldElement

    def __post_init__(self) -> None:
        for label, value in zip(self.field_names(), self.as_tuple()):
            require_field_element(value, label)

    @staticmethod
    def field_names() -> Tuple[str, str, str, str]:
        return ("root", "nullifier_hash", "signal", "scope")

    def as_tuple(self) -> Tuple[FieldElement, FieldElement, FieldElement, FieldElement]:
        return (self.root, self.nullifier_hash, self.signal, self.scope)

    def to_bytes(self) -> bytes:
        """Fixed-width encoding: four 32-byte big-endian field elements."""
        return b"".join(
            to_bytes32(value, label)
            for label, value in zip(self.field_names(), self.as_tuple())
        )

    def to_dict(self) -> Dict[str, int]:
        return dict(zip(self.field_names(), self.as_tuple()))


# ============================================================================
# ACCESS REQUEST
# ============================================================================


@dataclass(frozen=True)
class AccessRequest:
    """
    Proof submission for one context.

    Attributes:
        context_id: Group context the proof targets
        signal: Message bound into the proof
        nullifier_hash: One-time identifier revealed by the prover
        proof: Opaque proof artifact
    """

    context_id: int
    signal: FieldElement
    nullifier_hash: FieldElement
    proof: bytes

    def validate(self) -> None:
        """
        Raises:
            FieldElementError: If a numeric field is outside the field
            MalformedRequestError: If the proof blob is missing or too large
        """
        require_field_element(self.context_id, "context_id")
        require_field_element(self.signal, "signal")
        require_field_element(self.nullifier_hash, "nullifier_hash")
        if not isinstance(self.proof, (bytes, bytearray)):
            raise MalformedRequestError("proof must be bytes")
        if not self.proof:
            raise MalformedRequestError("proof cannot be empty")
        if len(self.proof) > MAX_PROOF_BYTES:
            raise MalformedRequestError("proof too large")

    @property
    def replay_key(self) -> Tuple[int, FieldElement]:
        return (self.context_id, self.nullifier_hash)


def encode_request(req: AccessRequest) -> bytes:
    req.validate()
    payload = {
        "v": REQUEST_VERSION,
        "context_id": req.context_id,
        "signal": req.signal,
        "nullifier_hash": req.nullifier_hash,
        "proof": bytes(req.proof),
    }
    return cbor2.dumps(payload)


def decode_request(blob: bytes) -> AccessRequest:
    """
    Decode and validate a CBOR access request.

    Raises:
        MalformedRequestError: On any schema violation
    """
    if not isinstance(blob, (bytes, bytearray)):
        raise MalformedRequestError("request must be bytes")
    if len(blob) > MAX_REQUEST_BYTES:
        raise MalformedRequestError("request too large")
    try:
        payload = cbor2.loads(blob)
    except Exception as exc:
        raise MalformedRequestError("request is not valid CBOR") from exc
    if not isinstance(payload, dict):
        raise MalformedRequestError("request must be a map")
    if payload.get("v") != REQUEST_VERSION:
        raise MalformedRequestError("unsupported request version")

    req = AccessRequest(
        context_id=_require_key(payload, "context_id"),
        signal=_require_key(payload, "signal"),
        nullifier_hash=_require_key(payload, "nullifier_hash"),
        proof=_require_key(payload, "proof"),
    )
    try:
        req.validate()
    except FieldElementError as exc:
        raise MalformedRequestError(str(exc)) from exc
    return req


def _require_key(payload: Dict[str, Any], key: str) -> Any:
    if key not in payload:
        raise MalformedRequestError(f"missing {key}")
    return payload[key]
