"""
Lean incremental Merkle tree (LeanIMT) for group membership.

Build rule, level by level from the leaves:
    - adjacent nodes (i, i+1) are hashed into their parent
    - an unpaired last node is promoted unchanged (no hashing, no padding)

Proofs mirror the rule: a zero sibling means "pass the current node
through", so zero is never accepted as a leaf. Proofs are padded with zero
siblings up to the depth the circuit was compiled for.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .config import DEFAULT_TREE_DEPTH, MAX_TREE_DEPTH
from .exceptions import (
    DepthTooSmallError,
    IndexOutOfRangeError,
    InvalidDepthError,
    LeafAlreadyExistsError,
    LeafCannotBeZeroError,
    TreeFullError,
    ValidationError,
)
from .field import FieldElement, HashPrimitive, require_field_element, resolve_hasher

# Path index values
LEFT = 0
RIGHT = 1

EMPTY_ROOT = 0


def required_depth(size: int) -> int:
    """
    Minimum number of levels needed for ``size`` leaves, i.e. ceil(log2(size)).

    Example:
        >>> required_depth(3)
        2
    """
    if isinstance(size, bool) or not isinstance(size, int) or size < 0:
        raise ValidationError("size must be a non-negative int")
    if size <= 1:
        return 0
    return (size - 1).bit_length()


def _check_leaf(value, label: str) -> FieldElement:
    require_field_element(value, label)
    if value == 0:
        raise LeafCannotBeZeroError(f"{label} cannot be zero")
    return value


def _check_leaves(leaves: Iterable[FieldElement]) -> List[FieldElement]:
    if isinstance(leaves, (str, bytes, bytearray)):
        raise ValidationError("leaves must be a sequence of field elements")
    return [_check_leaf(leaf, f"leaves[{idx}]") for idx, leaf in enumerate(leaves)]


def _check_index(index, size: int) -> int:
    if isinstance(index, bool) or not isinstance(index, int):
        raise IndexOutOfRangeError("index must be an int")
    if index < 0 or index >= size:
        raise IndexOutOfRangeError(f"index {index} out of range for {size} leaves")
    return index


def _check_depth(depth, size: int) -> int:
    if isinstance(depth, bool) or not isinstance(depth, int):
        raise InvalidDepthError("depth must be an int")
    if depth < 0 or depth > MAX_TREE_DEPTH:
        raise InvalidDepthError(f"depth must be between 0 and {MAX_TREE_DEPTH}")
    needed = required_depth(size)
    if depth < needed:
        raise DepthTooSmallError(
            f"depth {depth} cannot represent {size} leaves (needs {needed})"
        )
    return depth


def _next_level(level: Sequence[FieldElement], hasher: HashPrimitive) -> List[FieldElement]:
    parents: List[FieldElement] = []
    for i in range(0, len(level), 2):
        if i + 1 < len(level):
            parents.append(hasher.hash([level[i], level[i + 1]]))
        else:
            # Odd node is promoted without hashing
            parents.append(level[i])
    return parents


@dataclass(frozen=True)
class MerkleProof:
    """
    Inclusion proof for one leaf.

    Attributes:
        leaf: Proven leaf value
        index: Leaf position
        root: Root the proof folds to
        path_indices: LEFT/RIGHT position of the current node at each level
        siblings: Sibling at each level; 0 means pass-through
    """

    leaf: FieldElement
    index: int
    root: FieldElement
    path_indices: Tuple[int, ...]
    siblings: Tuple[FieldElement, ...]

    def __post_init__(self) -> None:
        if len(self.path_indices) != len(self.siblings):
            raise ValidationError("path_indices and siblings length mismatch")
        require_field_element(self.leaf, "leaf")
        require_field_element(self.root, "root")
        if isinstance(self.index, bool) or not isinstance(self.index, int) or self.index < 0:
            raise ValidationError("index must be a non-negative int")
        for idx, position in enumerate(self.path_indices):
            if position not in (LEFT, RIGHT) or isinstance(position, bool):
                raise ValidationError(f"path_indices[{idx}] must be 0 or 1")
        for idx, sibling in enumerate(self.siblings):
            require_field_element(sibling, f"siblings[{idx}]")

    @property
    def depth(self) -> int:
        return len(self.siblings)

    def to_dict(self) -> Dict[str, object]:
        return {
            "leaf": self.leaf,
            "index": self.index,
            "root": self.root,
            "path_indices": list(self.path_indices),
            "siblings": list(self.siblings),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "MerkleProof":
        if not isinstance(data, dict):
            raise ValidationError("merkle proof must be a dict")
        try:
            return cls(
                leaf=data["leaf"],
                index=data["index"],
                root=data["root"],
                path_indices=tuple(data["path_indices"]),
                siblings=tuple(data["siblings"]),
            )
        except (KeyError, TypeError) as exc:
            raise ValidationError(f"malformed merkle proof: {exc}") from exc


def compute_root(
    leaves: Iterable[FieldElement], hasher: Optional[HashPrimitive] = None
) -> FieldElement:
    """
    Compute the LeanIMT root of an ordered leaf sequence.

    Returns EMPTY_ROOT (0) for no leaves and the leaf itself for one leaf.
    """
    level = _check_leaves(leaves)
    if not level:
        return EMPTY_ROOT
    hasher = resolve_hasher(hasher)
    while len(level) > 1:
        level = _next_level(level, hasher)
    return level[0]


def proof_for_index(
    leaves: Iterable[FieldElement],
    index: int,
    depth: int = DEFAULT_TREE_DEPTH,
    hasher: Optional[HashPrimitive] = None,
) -> MerkleProof:
    """
    Build an inclusion proof for ``leaves[index]`` padded to ``depth`` levels.

    Raises:
        IndexOutOfRangeError: If index does not name a leaf
        DepthTooSmallError: If depth < ceil(log2(len(leaves)))
    """
    values = _check_leaves(leaves)
    _check_index(index, len(values))
    _check_depth(depth, len(values))
    hasher = resolve_hasher(hasher)

    path_indices: List[int] = []
    siblings: List[FieldElement] = []
    level = values
    position = index
    while len(level) > 1:
        is_right = position & 1
        sibling_position = position - 1 if is_right else position + 1
        path_indices.append(RIGHT if is_right else LEFT)
        siblings.append(level[sibling_position] if sibling_position < len(level) else 0)
        level = _next_level(level, hasher)
        position >>= 1

    padding = depth - len(siblings)
    path_indices.extend([LEFT] * padding)
    siblings.extend([0] * padding)

    return MerkleProof(
        leaf=values[index],
        index=index,
        root=level[0],
        path_indices=tuple(path_indices),
        siblings=tuple(siblings),
    )


def fold_proof(
    leaf: FieldElement, proof: MerkleProof, hasher: Optional[HashPrimitive] = None
) -> FieldElement:
    """
    Fold a proof from ``leaf`` up to a root, skipping zero siblings.
    """
    require_field_element(leaf, "leaf")
    hasher = resolve_hasher(hasher)
    node = leaf
    for position, sibling in zip(proof.path_indices, proof.siblings):
        if sibling == 0:
            continue
        if position == RIGHT:
            node = hasher.hash([sibling, node])
        else:
            node = hasher.hash([node, sibling])
    return node


def verify_proof(
    leaf: FieldElement,
    proof: MerkleProof,
    root: FieldElement,
    hasher: Optional[HashPrimitive] = None,
) -> bool:
    """
    Check that ``proof`` folds ``leaf`` to ``root``.

    Example:
        if verify_proof(my_leaf, proof, frozen_root):
            print("Leaf is in tree")
    """
    return fold_proof(leaf, proof, hasher) == root


class LeanIMT:
    """
    Append-only LeanIMT keeping every level in memory.

    Appending recomputes only the path of the new leaf. Leaves are unique
    and non-zero; order is preserved exactly as admitted.

    Example:
        >>> tree = LeanIMT()
        >>> tree.append_leaf(leaf)
        0
        >>> proof = tree.generate_proof(0)
    """

    def __init__(
        self,
        hasher: Optional[HashPrimitive] = None,
        max_depth: int = DEFAULT_TREE_DEPTH,
        leaves: Optional[Iterable[FieldElement]] = None,
    ) -> None:
        if isinstance(max_depth, bool) or not isinstance(max_depth, int):
            raise InvalidDepthError("max_depth must be an int")
        if not 1 <= max_depth <= MAX_TREE_DEPTH:
            raise InvalidDepthError(f"max_depth must be between 1 and {MAX_TREE_DEPTH}")
        self._hasher = resolve_hasher(hasher)
        self._max_depth = max_depth
        self._nodes: List[List[FieldElement]] = [[]]
        self._positions: Dict[FieldElement, int] = {}
        if leaves is not None:
            self.append_leaves(leaves)

    @property
    def hasher(self) -> HashPrimitive:
        return self._hasher

    @property
    def max_depth(self) -> int:
        return self._max_depth

    @property
    def size(self) -> int:
        return len(self._nodes[0])

    @property
    def depth(self) -> int:
        return len(self._nodes) - 1

    @property
    def root(self) -> FieldElement:
        if not self._nodes[0]:
            return EMPTY_ROOT
        return self._nodes[self.depth][0]

    @property
    def leaves(self) -> Tuple[FieldElement, ...]:
        return tuple(self._nodes[0])

    def __len__(self) -> int:
        return self.size

    def __contains__(self, leaf: object) -> bool:
        return leaf in self._positions

    def index_of(self, leaf: FieldElement) -> Optional[int]:
        return self._positions.get(leaf)

    def _check_new_leaves(self, leaves: Iterable[FieldElement]) -> List[FieldElement]:
        values = _check_leaves(leaves)
        seen = set()
        for idx, leaf in enumerate(values):
            if leaf in self._positions or leaf in seen:
                raise LeafAlreadyExistsError(f"leaves[{idx}] is already in the tree")
            seen.add(leaf)
        capacity = 2 ** self._max_depth
        if self.size + len(values) > capacity:
            raise TreeFullError(f"tree is limited to {capacity} leaves")
        return values

    def append_leaf(self, leaf: FieldElement) -> int:
        """
        Append one leaf and return its index.

        Raises:
            FieldElementError / LeafCannotBeZeroError: For invalid values
            LeafAlreadyExistsError: If the leaf is already present
            TreeFullError: If max_depth would be exceeded
        """
        (value,) = self._check_new_leaves([leaf])
        return self._insert(value)

    def append_leaves(self, leaves: Iterable[FieldElement]) -> List[int]:
        """Append several leaves; nothing is appended if any is rejected."""
        values = self._check_new_leaves(list(leaves))
        return [self._insert(value) for value in values]

    def append_leaves_with_roots(
        self, leaves: Iterable[FieldElement]
    ) -> List[Tuple[int, FieldElement]]:
        """Like append_leaves, returning (index, root after that leaf) per leaf."""
        values = self._check_new_leaves(list(leaves))
        return [(self._insert(value), self.root) for value in values]

    def _insert(self, leaf: FieldElement) -> int:
        index = self.size
        if index + 1 > 2 ** self.depth:
            self._nodes.append([])
        depth = self.depth

        node = leaf
        position = index
        for level in range(depth):
            self._set_node(level, position, node)
            if position & 1:
                node = self._hasher.hash([self._nodes[level][position - 1], node])
            position >>= 1
        self._set_node(depth, 0, node)

        self._positions[leaf] = index
        return index

    def _set_node(self, level: int, position: int, value: FieldElement) -> None:
        row = self._nodes[level]
        if position < len(row):
            row[position] = value
        else:
            row.append(value)

    def generate_proof(self, index: int, depth: Optional[int] = None) -> MerkleProof:
        """
        Inclusion proof for the leaf at ``index`` using the stored levels.

        Args:
            index: Leaf index
            depth: Padded proof length (defaults to max_depth)
        """
        _check_index(index, self.size)
        depth = self._max_depth if depth is None else depth
        _check_depth(depth, self.size)

        path_indices: List[int] = []
        siblings: List[FieldElement] = []
        position = index
        for level in range(self.depth):
            row = self._nodes[level]
            sibling_position = position ^ 1
            path_indices.append(RIGHT if position & 1 else LEFT)
            siblings.append(row[sibling_position] if sibling_position < len(row) else 0)
            position >>= 1

        padding = depth - len(siblings)
        path_indices.extend([LEFT] * padding)
        siblings.extend([0] * padding)

        return MerkleProof(
            leaf=self._nodes[0][index],
            index=index,
            root=self.root,
            path_indices=tuple(path_indices),
            siblings=tuple(siblings),
        )
