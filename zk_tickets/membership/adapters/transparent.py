from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

import cbor2

from ..config import TRANSPARENT_PROOF_VERSION
from ..exceptions import ValidationError
from ..field import FieldElement, HashPrimitive, require_field_element, resolve_hasher
from ..identity import Identity, compute_leaf, compute_nullifier_hash
from ..merkle import MerkleProof, verify_proof
from ..security import constant_time_equal
from ..types import PublicSignals

logger = logging.getLogger(__name__)


class TransparentVerifier:
    """
    Verifier over a transparent (non zero-knowledge) witness proof.

    The proof blob carries the member's secrets, attribute and Merkle path in
    CBOR, and verification recomputes every relation the membership circuit
    enforces:

        leaf = H(H(nullifier_secret, trapdoor_secret), attribute)
        fold(leaf, path) == root
        H(scope, nullifier_secret) == nullifier_hash

    plus the group, signal and scope the proof was bound to.

    Notes:
    - It does NOT hide anything from the verifier. Use it for tests, local
      tooling and demos; deployments that need privacy use SnarkVerifier.
    - Malformed proofs verify as False, they never raise.
    """

    backend_name = "transparent"

    def __init__(self, hasher: Optional[HashPrimitive] = None) -> None:
        self._hasher = resolve_hasher(hasher)

    @property
    def hasher(self) -> HashPrimitive:
        return self._hasher

    def verify(self, group_id: int, signals: PublicSignals, proof: bytes) -> bool:
        try:
            witness = decode_transparent_proof(proof)
        except ValidationError as exc:
            logger.debug("rejecting transparent proof: %s", exc)
            return False

        if witness["group_id"] != group_id:
            return False
        if witness["signal"] != signals.signal or witness["scope"] != signals.scope:
            return False

        identity: Identity = witness["identity"]
        leaf = compute_leaf(
            identity.commitment_with(self._hasher), witness["attribute"], self._hasher
        )
        try:
            merkle_proof = MerkleProof(
                leaf=leaf,
                index=witness["index"],
                root=signals.root,
                path_indices=witness["path_indices"],
                siblings=witness["siblings"],
            )
        except ValidationError as exc:
            logger.debug("rejecting transparent proof: %s", exc)
            return False
        if not verify_proof(leaf, merkle_proof, signals.root, self._hasher):
            return False

        expected = compute_nullifier_hash(
            identity.nullifier_secret, signals.scope, self._hasher
        )
        return constant_time_equal(expected, signals.nullifier_hash)


def build_transparent_proof(
    identity: Identity,
    attribute: FieldElement,
    merkle_proof: MerkleProof,
    *,
    group_id: int,
    scope: FieldElement,
    signal: FieldElement,
    hasher: Optional[HashPrimitive] = None,
) -> Tuple[FieldElement, bytes]:
    """
    Produce a transparent proof for ``identity``.

    Returns:
        (nullifier_hash, proof bytes) ready for an AccessRequest

    Raises:
        ValidationError: If the identity's leaf does not match the Merkle proof
    """
    if not isinstance(identity, Identity):
        raise ValidationError("identity must be an Identity")
    require_field_element(attribute, "attribute")
    require_field_element(scope, "scope")
    require_field_element(signal, "signal")
    hasher = resolve_hasher(hasher)

    leaf = compute_leaf(identity.commitment_with(hasher), attribute, hasher)
    if leaf != merkle_proof.leaf:
        raise ValidationError("identity and attribute do not match the proven leaf")

    payload = {
        "v": TRANSPARENT_PROOF_VERSION,
        "group_id": group_id,
        "scope": scope,
        "signal": signal,
        "attribute": attribute,
        "identity": identity.to_dict(),
        "index": merkle_proof.index,
        "path_indices": list(merkle_proof.path_indices),
        "siblings": list(merkle_proof.siblings),
    }
    nullifier_hash = compute_nullifier_hash(identity.nullifier_secret, scope, hasher)
    return nullifier_hash, cbor2.dumps(payload)


def decode_transparent_proof(blob: bytes) -> Dict[str, Any]:
    """
    Parse a transparent proof into its typed parts.

    Raises:
        ValidationError: On any schema violation
    """
    if not isinstance(blob, (bytes, bytearray)) or not blob:
        raise ValidationError("proof must be non-empty bytes")
    try:
        payload = cbor2.loads(bytes(blob))
    except Exception as exc:
        raise ValidationError("proof is not valid CBOR") from exc
    if not isinstance(payload, dict):
        raise ValidationError("proof must be a map")
    if payload.get("v") != TRANSPARENT_PROOF_VERSION:
        raise ValidationError("unsupported transparent proof version")

    try:
        return {
            "group_id": payload["group_id"],
            "scope": require_field_element(payload["scope"], "scope"),
            "signal": require_field_element(payload["signal"], "signal"),
            "attribute": require_field_element(payload["attribute"], "attribute"),
            "identity": Identity.from_dict(payload["identity"]),
            "index": payload["index"],
            "path_indices": tuple(payload["path_indices"]),
            "siblings": tuple(payload["siblings"]),
        }
    except (KeyError, TypeError) as exc:
        raise ValidationError(f"malformed transparent proof: {exc}") from exc
