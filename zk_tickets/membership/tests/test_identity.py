"""Unit tests for the identity/leaf commitment scheme."""

from __future__ import annotations

import pytest

from zk_tickets.membership.config import FIELD_MODULUS
from zk_tickets.membership.exceptions import FieldElementError
from zk_tickets.membership.field import Sha256FieldHash, get_default_hasher
from zk_tickets.membership.identity import (
    Identity,
    compute_identity_commitment,
    compute_leaf,
    compute_nullifier_hash,
)


def test_commitment_is_hash_of_secrets():
    hasher = get_default_hasher()
    assert compute_identity_commitment(11, 22) == hasher.hash([11, 22])


def test_leaf_binds_commitment_and_attribute():
    hasher = get_default_hasher()
    commitment = compute_identity_commitment(11, 22)
    assert compute_leaf(commitment, 1) == hasher.hash([commitment, 1])


def test_leaf_changes_with_each_input():
    commitment = compute_identity_commitment(11, 22)
    base = compute_leaf(commitment, 1)
    assert compute_leaf(commitment, 2) != base
    assert compute_leaf(compute_identity_commitment(11, 23), 1) != base
    assert compute_leaf(compute_identity_commitment(12, 22), 1) != base


def test_nullifier_hash_is_scope_first():
    hasher = get_default_hasher()
    assert compute_nullifier_hash(11, 99) == hasher.hash([99, 11])
    assert compute_nullifier_hash(11, 99) != compute_nullifier_hash(11, 98)


@pytest.mark.parametrize("bad", [-1, FIELD_MODULUS, "7", None])
def test_rejects_non_field_inputs(bad):
    with pytest.raises(FieldElementError):
        compute_identity_commitment(bad, 1)
    with pytest.raises(FieldElementError):
        compute_leaf(1, bad)


class TestIdentity:
    def test_generate_is_random_and_nonzero(self):
        first = Identity.generate()
        second = Identity.generate()
        assert first != second
        assert 0 < first.nullifier_secret < FIELD_MODULUS
        assert 0 < first.trapdoor_secret < FIELD_MODULUS

    def test_leaf_and_nullifier_helpers(self):
        member = Identity(nullifier_secret=5, trapdoor_secret=6)
        assert member.commitment == compute_identity_commitment(5, 6)
        assert member.leaf(3) == compute_leaf(member.commitment, 3)
        assert member.nullifier_hash(77) == compute_nullifier_hash(5, 77)

    def test_custom_hasher_changes_leaf(self):
        member = Identity(nullifier_secret=5, trapdoor_secret=6)
        other = Sha256FieldHash(b"other-domain")
        assert member.leaf(3, other) != member.leaf(3)
        assert member.commitment_with(other) == other.hash([5, 6])

    def test_repr_hides_secrets(self):
        member = Identity(nullifier_secret=123456789, trapdoor_secret=987654321)
        text = repr(member)
        assert "123456789" not in text
        assert "987654321" not in text

    def test_dict_round_trip(self):
        member = Identity.generate()
        assert Identity.from_dict(member.to_dict()) == member

    def test_from_dict_validates(self):
        with pytest.raises(FieldElementError):
            Identity.from_dict({"nullifier_secret": 1})
        with pytest.raises(TypeError):
            Identity.from_dict([1, 2])

    def test_rejects_out_of_field_secret(self):
        with pytest.raises(FieldElementError):
            Identity(nullifier_secret=FIELD_MODULUS, trapdoor_secret=1)
