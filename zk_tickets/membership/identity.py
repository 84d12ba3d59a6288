"""
Identity commitments and tree leaves.

    commitment = H(nullifier_secret, trapdoor_secret)
    leaf       = H(commitment, attribute)
    nullifier  = H(scope, nullifier_secret)

Secrets stay with the member; only the commitment-derived leaf is admitted
to a group and only the nullifier hash is revealed at verification time.
The attribute (e.g. ticket tier) is a private proof input.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .field import FieldElement, HashPrimitive, require_field_element, resolve_hasher
from .security import RandomnessSource


def compute_identity_commitment(
    nullifier_secret: FieldElement,
    trapdoor_secret: FieldElement,
    hasher: Optional[HashPrimitive] = None,
) -> FieldElement:
    """
    Derive the public identity commitment from the member's secrets.

    Raises:
        FieldElementError: If either secret is outside the field
    """
    require_field_element(nullifier_secret, "nullifier_secret")
    require_field_element(trapdoor_secret, "trapdoor_secret")
    return resolve_hasher(hasher).hash([nullifier_secret, trapdoor_secret])


def compute_leaf(
    commitment: FieldElement,
    attribute: FieldElement,
    hasher: Optional[HashPrimitive] = None,
) -> FieldElement:
    """
    Bind an identity commitment to an application attribute.

    Changing either input changes the leaf.

    Raises:
        FieldElementError: If either input is outside the field
    """
    require_field_element(commitment, "commitment")
    require_field_element(attribute, "attribute")
    return resolve_hasher(hasher).hash([commitment, attribute])


def compute_nullifier_hash(
    nullifier_secret: FieldElement,
    scope: FieldElement,
    hasher: Optional[HashPrimitive] = None,
) -> FieldElement:
    """Derive the one-time nullifier hash for a scope."""
    require_field_element(nullifier_secret, "nullifier_secret")
    require_field_element(scope, "scope")
    return resolve_hasher(hasher).hash([scope, nullifier_secret])


@dataclass(frozen=True)
class Identity:
    """
    Member identity secrets.

    Example:
        >>> identity = Identity.generate()
        >>> leaf = identity.leaf(attribute=1)
    """

    nullifier_secret: FieldElement
    trapdoor_secret: FieldElement

    def __post_init__(self) -> None:
        require_field_element(self.nullifier_secret, "nullifier_secret")
        require_field_element(self.trapdoor_secret, "trapdoor_secret")

    def __repr__(self) -> str:
        return f"Identity(commitment={self.commitment})"

    @classmethod
    def generate(cls, rng: Optional[RandomnessSource] = None) -> "Identity":
        rng = rng or RandomnessSource()
        return cls(
            nullifier_secret=rng.get_random_field_element(),
            trapdoor_secret=rng.get_random_field_element(),
        )

    @property
    def commitment(self) -> FieldElement:
        return compute_identity_commitment(
            self.nullifier_secret, self.trapdoor_secret
        )

    def commitment_with(self, hasher: Optional[HashPrimitive]) -> FieldElement:
        return compute_identity_commitment(
            self.nullifier_secret, self.trapdoor_secret, hasher
        )

    def leaf(
        self, attribute: FieldElement, hasher: Optional[HashPrimitive] = None
    ) -> FieldElement:
        return compute_leaf(self.commitment_with(hasher), attribute, hasher)

    def nullifier_hash(
        self, scope: FieldElement, hasher: Optional[HashPrimitive] = None
    ) -> FieldElement:
        return compute_nullifier_hash(self.nullifier_secret, scope, hasher)

    def to_dict(self) -> dict:
        return {
            "nullifier_secret": self.nullifier_secret,
            "trapdoor_secret": self.trapdoor_secret,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Identity":
        if not isinstance(data, dict):
            raise TypeError("identity data must be a dict")
        return cls(
            nullifier_secret=data.get("nullifier_secret"),
            trapdoor_secret=data.get("trapdoor_secret"),
        )
