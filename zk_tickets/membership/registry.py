"""
Group registry: binds a context id to an admin, a LeanIMT and a lifecycle.

Lifecycle (one direction only):

    Uninitialized --create_group--> Open --freeze_group--> Frozen

Only a frozen group has an active root. Proofs are generated against a
specific root, so verification must target one that cannot change between
proving and checking.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .config import DEFAULT_TREE_DEPTH
from .events import GroupCreated, GroupFrozen, ListenerSet, MemberAdded
from .exceptions import (
    AlreadyFrozenError,
    AlreadyInitializedError,
    GroupNotInitializedError,
    GroupNotReadyError,
    InvalidAdminError,
    UnauthorizedError,
    ValidationError,
)
from .field import FieldElement, HashPrimitive, require_field_element, resolve_hasher
from .locks import KeyedLock
from .merkle import LeanIMT, MerkleProof

logger = logging.getLogger(__name__)


class GroupState(Enum):
    """Lifecycle states of a registered group."""

    OPEN = "open"
    FROZEN = "frozen"


@dataclass
class Group:
    """
    Registry record for one context.

    Attributes:
        context_id: Application context (e.g. event id)
        group_id: Identifier passed to the external verifier
        admin: Principal allowed to add members and freeze
        tree: Membership tree
        frozen_root: Root snapshot taken at freeze time
    """

    context_id: int
    group_id: int
    admin: str
    tree: LeanIMT
    frozen_root: Optional[FieldElement] = None

    @property
    def state(self) -> GroupState:
        if self.frozen_root is None:
            return GroupState.OPEN
        return GroupState.FROZEN


def _require_admin(admin) -> str:
    if not isinstance(admin, str) or not admin.strip():
        raise InvalidAdminError("admin must be a non-empty string")
    return admin


class GroupRegistry:
    """
    Store of groups keyed by context id.

    Mutations on one context are serialized by a per-context lock; distinct
    contexts proceed independently. Each mutation validates everything
    before touching state, so it is applied fully or not at all.

    Example:
        >>> registry = GroupRegistry()
        >>> registry.create_group(1, admin="organizer")
        >>> registry.add_member(1, leaf, caller="organizer")
        >>> root = registry.freeze_group(1, caller="organizer")
        >>> assert registry.get_active_root(1) == root
    """

    def __init__(
        self,
        hasher: Optional[HashPrimitive] = None,
        max_depth: int = DEFAULT_TREE_DEPTH,
    ) -> None:
        self._hasher = resolve_hasher(hasher)
        self._max_depth = max_depth
        self._groups: Dict[int, Group] = {}
        self._guard = threading.Lock()
        self._context_locks = KeyedLock()
        self._next_group_id = 0
        self._listeners = ListenerSet()

    @property
    def hasher(self) -> HashPrimitive:
        return self._hasher

    @property
    def max_depth(self) -> int:
        return self._max_depth

    def subscribe(self, listener: Callable[[object], None]) -> Callable[[], None]:
        """Register a listener for GroupCreated / MemberAdded / GroupFrozen."""
        return self._listeners.subscribe(listener)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create_group(self, context_id: int, admin: str) -> int:
        """
        Register a new open group for ``context_id``.

        Returns:
            The allocated group id

        Raises:
            InvalidAdminError: If admin is empty
            AlreadyInitializedError: If the context already has a group
        """
        require_field_element(context_id, "context_id")
        _require_admin(admin)

        with self._guard:
            if context_id in self._groups:
                raise AlreadyInitializedError(
                    f"group for context {context_id} already exists"
                )
            group_id = self._next_group_id
            self._groups[context_id] = Group(
                context_id=context_id,
                group_id=group_id,
                admin=admin,
                tree=LeanIMT(hasher=self._hasher, max_depth=self._max_depth),
            )
            self._next_group_id += 1

        logger.info("created group %d for context %d", group_id, context_id)
        self._listeners.emit(
            GroupCreated(context_id=context_id, group_id=group_id, admin=admin)
        )
        return group_id

    def add_member(self, context_id: int, leaf: FieldElement, *, caller: str) -> int:
        """
        Append ``leaf`` to an open group.

        Returns:
            Index of the new leaf

        Raises:
            GroupNotInitializedError: Unknown context
            UnauthorizedError: Caller is not the admin
            AlreadyFrozenError: Group is frozen
            ValidationError / StateError: Leaf rejected by the tree
        """
        (index,) = self.add_members(context_id, [leaf], caller=caller)
        return index

    def add_members(
        self, context_id: int, leaves: Iterable[FieldElement], *, caller: str
    ) -> List[int]:
        """Append several leaves in order; none are added if any is rejected."""
        require_field_element(context_id, "context_id")
        values = list(leaves)

        with self._context_locks.hold(context_id):
            group = self._require_group(context_id)
            self._require_admin_caller(group, caller)
            if group.state is GroupState.FROZEN:
                raise AlreadyFrozenError(f"group for context {context_id} is frozen")

            added = group.tree.append_leaves_with_roots(values)

        for (index, root), leaf in zip(added, values):
            logger.debug("context %d: added leaf #%d", context_id, index)
            self._listeners.emit(
                MemberAdded(context_id=context_id, index=index, leaf=leaf, root=root)
            )
        return [index for index, _ in added]

    def freeze_group(self, context_id: int, *, caller: str) -> FieldElement:
        """
        Freeze membership and snapshot the current root. Irreversible.

        Returns:
            The frozen root

        Raises:
            GroupNotInitializedError: Unknown context
            UnauthorizedError: Caller is not the admin
            AlreadyFrozenError: Group was already frozen
        """
        require_field_element(context_id, "context_id")

        with self._context_locks.hold(context_id):
            group = self._require_group(context_id)
            self._require_admin_caller(group, caller)
            if group.state is GroupState.FROZEN:
                raise AlreadyFrozenError(f"group for context {context_id} is frozen")
            group.frozen_root = group.tree.root
            root = group.frozen_root
            size = group.tree.size

        logger.info(
            "froze context %d with %d members (root %#x)", context_id, size, root
        )
        self._listeners.emit(GroupFrozen(context_id=context_id, root=root, size=size))
        return root

    def get_active_root(self, context_id: int) -> FieldElement:
        """
        Root that proofs for ``context_id`` must be checked against.

        Raises:
            GroupNotInitializedError: Unknown context
            GroupNotReadyError: Group is still open
        """
        group = self._require_group(context_id)
        if group.frozen_root is None:
            raise GroupNotReadyError(f"group for context {context_id} is not frozen")
        return group.frozen_root

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    def has_group(self, context_id: int) -> bool:
        with self._guard:
            return context_id in self._groups

    def is_frozen(self, context_id: int) -> bool:
        return self._require_group(context_id).state is GroupState.FROZEN

    def state_of(self, context_id: int) -> GroupState:
        return self._require_group(context_id).state

    def tree_size(self, context_id: int) -> int:
        return self._require_group(context_id).tree.size

    def admin_of(self, context_id: int) -> str:
        return self._require_group(context_id).admin

    def group_id_of(self, context_id: int) -> int:
        return self._require_group(context_id).group_id

    def current_root(self, context_id: int) -> FieldElement:
        """Live root of the tree; informational, never used for verification."""
        with self._context_locks.hold(context_id):
            return self._require_group(context_id).tree.root

    def get_leaves(self, context_id: int) -> Tuple[FieldElement, ...]:
        with self._context_locks.hold(context_id):
            return self._require_group(context_id).tree.leaves

    def merkle_proof(
        self, context_id: int, index: int, depth: Optional[int] = None
    ) -> MerkleProof:
        with self._context_locks.hold(context_id):
            return self._require_group(context_id).tree.generate_proof(index, depth)

    def context_ids(self) -> Tuple[int, ...]:
        with self._guard:
            return tuple(sorted(self._groups))

    # ------------------------------------------------------------------
    # Snapshot support
    # ------------------------------------------------------------------

    def _export_groups(self) -> List[Dict[str, object]]:
        """Consistent per-group records, each read under its context lock."""
        records = []
        for context_id in self.context_ids():
            with self._context_locks.hold(context_id):
                group = self._require_group(context_id)
                records.append(
                    {
                        "context_id": group.context_id,
                        "group_id": group.group_id,
                        "admin": group.admin,
                        "leaves": list(group.tree.leaves),
                        "frozen_root": group.frozen_root,
                    }
                )
        return records

    def _restore_group(self, group: Group) -> None:
        require_field_element(group.context_id, "context_id")
        _require_admin(group.admin)
        if (
            isinstance(group.group_id, bool)
            or not isinstance(group.group_id, int)
            or group.group_id < 0
        ):
            raise ValidationError("group_id must be a non-negative int")
        with self._guard:
            if group.context_id in self._groups:
                raise AlreadyInitializedError(
                    f"group for context {group.context_id} already exists"
                )
            if any(g.group_id == group.group_id for g in self._groups.values()):
                raise AlreadyInitializedError(
                    f"group id {group.group_id} is already allocated"
                )
            self._groups[group.context_id] = group
            self._next_group_id = max(self._next_group_id, group.group_id + 1)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_group(self, context_id: int) -> Group:
        with self._guard:
            group = self._groups.get(context_id)
        if group is None:
            raise GroupNotInitializedError(f"no group for context {context_id}")
        return group

    @staticmethod
    def _require_admin_caller(group: Group, caller: str) -> None:
        if caller != group.admin:
            logger.warning(
                "rejected %r: not admin of context %d", caller, group.context_id
            )
            raise UnauthorizedError(
                f"caller is not the admin of context {group.context_id}"
            )
