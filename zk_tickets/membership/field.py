"""
Field elements and the field hash primitive.

All protocol values (secrets, commitments, leaves, roots, nullifier hashes,
scopes) are elements of the BN254 scalar field. Inputs outside [0, p) are
rejected, never reduced: reduction would silently merge distinct inputs.

The default hash is a SHA-256 construction with domain separation standing
in for Poseidon. Deployments whose prover uses Poseidon inject an
implementation of ``HashPrimitive`` that matches the circuit bit-for-bit.
"""

from __future__ import annotations

import hashlib
from typing import Protocol, Sequence, runtime_checkable

from .config import (
    DOMAIN_SEPARATORS,
    FIELD_BYTE_ORDER,
    FIELD_ELEMENT_BYTES,
    FIELD_MODULUS,
    HASH_TO_FIELD_SHIFT,
    MAX_HASH_ARITY,
    MIN_HASH_ARITY,
)
from .exceptions import FieldElementError, ValidationError

FieldElement = int


@runtime_checkable
class HashPrimitive(Protocol):
    """Collision-resistant hash from field elements to a field element."""

    name: str
    modulus: int

    def hash(self, inputs: Sequence[FieldElement]) -> FieldElement:
        ...


def require_field_element(
    value, label: str = "value", modulus: int = FIELD_MODULUS
) -> FieldElement:
    """
    Check that ``value`` is a canonical field element and return it.

    Raises:
        FieldElementError: If value is not an int, is a bool, or is outside [0, p)
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise FieldElementError(
            f"{label} must be an int, got {type(value).__name__}"
        )
    if value < 0:
        raise FieldElementError(f"{label} must be non-negative")
    if value >= modulus:
        raise FieldElementError(f"{label} must be less than the field modulus")
    return value


def is_field_element(value, modulus: int = FIELD_MODULUS) -> bool:
    try:
        require_field_element(value, modulus=modulus)
    except FieldElementError:
        return False
    return True


def to_bytes32(value: FieldElement, label: str = "value") -> bytes:
    """Encode a field element as fixed-width big-endian bytes."""
    require_field_element(value, label)
    return value.to_bytes(FIELD_ELEMENT_BYTES, FIELD_BYTE_ORDER)


def from_bytes32(data: bytes, label: str = "value") -> FieldElement:
    """Decode fixed-width bytes into a field element (no reduction)."""
    if not isinstance(data, (bytes, bytearray)):
        raise FieldElementError(f"{label} must be bytes")
    if len(data) != FIELD_ELEMENT_BYTES:
        raise FieldElementError(
            f"{label} must be exactly {FIELD_ELEMENT_BYTES} bytes"
        )
    value = int.from_bytes(bytes(data), FIELD_BYTE_ORDER)
    return require_field_element(value, label)


def hash_to_field(data: bytes | str) -> FieldElement:
    """
    Map arbitrary bytes into the field.

    The SHA-256 digest is shifted right by 8 bits, so the result has at most
    248 bits and is always below the modulus. Shifting (not reducing) keeps
    the mapping uniform over its range.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    if not isinstance(data, (bytes, bytearray)):
        raise ValidationError("hash_to_field input must be bytes or str")
    digest = hashlib.sha256(DOMAIN_SEPARATORS["hash_to_field"] + bytes(data)).digest()
    return int.from_bytes(digest, "big") >> HASH_TO_FIELD_SHIFT


class Sha256FieldHash:
    """
    SHA-256 based field hash.

    H(x_1..x_k) = SHA-256(domain || k || x_1 || ... || x_k) mod p, each x_i
    encoded as 32 big-endian bytes. The arity byte keeps H(a) and H(a, 0)
    apart.

    Example:
        >>> hasher = Sha256FieldHash()
        >>> parent = hasher.hash([left, right])
    """

    name = "sha256-field"
    modulus = FIELD_MODULUS

    def __init__(self, domain_separator: bytes = DOMAIN_SEPARATORS["field_hash"]):
        if not isinstance(domain_separator, bytes) or not domain_separator:
            raise ValidationError("domain_separator must be non-empty bytes")
        self._domain = domain_separator

    def hash(self, inputs: Sequence[FieldElement]) -> FieldElement:
        values = list(inputs)
        if not MIN_HASH_ARITY <= len(values) <= MAX_HASH_ARITY:
            raise ValidationError(
                f"hash arity must be between {MIN_HASH_ARITY} and {MAX_HASH_ARITY}"
            )
        payload = bytearray(self._domain)
        payload.append(len(values))
        for idx, value in enumerate(values):
            payload.extend(to_bytes32(value, f"inputs[{idx}]"))
        digest = hashlib.sha256(bytes(payload)).digest()
        return int.from_bytes(digest, "big") % self.modulus

    def __repr__(self) -> str:
        return f"{type(self).__name__}(domain={self._domain!r})"


_DEFAULT_HASHER = Sha256FieldHash()


def get_default_hasher() -> HashPrimitive:
    return _DEFAULT_HASHER


def resolve_hasher(hasher: HashPrimitive | None) -> HashPrimitive:
    if hasher is None:
        return _DEFAULT_HASHER
    if not isinstance(hasher, HashPrimitive):
        raise ValidationError("hasher must implement HashPrimitive")
    return hasher
