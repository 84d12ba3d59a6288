"""
CBOR snapshots of registry and ledger state.

Snapshot layout (version 1):

    {
        "v": 1,
        "hasher": "sha256-field",
        "max_depth": 20,
        "groups": [
            {"context_id", "group_id", "admin", "leaves": [...],
             "frozen_root": int | None},
        ],
        "nullifiers": {context_id: [nullifier_hash, ...]},
    }

Trees are rebuilt by replaying leaves, so a snapshot cannot smuggle in a
root that its leaves do not produce.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import cbor2

from .config import DEFAULT_TREE_DEPTH, STATE_VERSION
from .exceptions import PersistenceError, SnapshotError, TicketingError
from .field import HashPrimitive, resolve_hasher
from .merkle import LeanIMT
from .nullifiers import NullifierLedger
from .registry import Group, GroupRegistry

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


def dump_state(registry: GroupRegistry, ledger: NullifierLedger) -> bytes:
    """Serialize registry and ledger into a CBOR snapshot."""
    groups = registry._export_groups()
    nullifiers = {
        context_id: list(ledger.used_nullifiers(context_id))
        for context_id in ledger.context_ids()
    }
    payload = {
        "v": STATE_VERSION,
        "hasher": registry.hasher.name,
        "max_depth": registry.max_depth,
        "groups": groups,
        "nullifiers": nullifiers,
    }
    return cbor2.dumps(payload)


def load_state(
    data: bytes,
    hasher: Optional[HashPrimitive] = None,
    max_depth: Optional[int] = None,
) -> Tuple[GroupRegistry, NullifierLedger]:
    """
    Rebuild registry and ledger from a snapshot.

    Raises:
        SnapshotError: If the snapshot is malformed or inconsistent
    """
    hasher = resolve_hasher(hasher)
    try:
        payload = cbor2.loads(data)
    except Exception as exc:
        raise SnapshotError("snapshot is not valid CBOR") from exc
    if not isinstance(payload, dict):
        raise SnapshotError("snapshot must be a map")
    if payload.get("v") != STATE_VERSION:
        raise SnapshotError(f"unsupported snapshot version {payload.get('v')!r}")
    if payload.get("hasher") != hasher.name:
        raise SnapshotError(
            f"snapshot was written with hasher {payload.get('hasher')!r}, "
            f"not {hasher.name!r}"
        )

    if max_depth is None:
        max_depth = payload.get("max_depth", DEFAULT_TREE_DEPTH)

    try:
        registry = GroupRegistry(hasher=hasher, max_depth=max_depth)
        for entry in payload.get("groups", []):
            registry._restore_group(_load_group(entry, hasher, max_depth))

        ledger = NullifierLedger()
        for context_id, hashes in payload.get("nullifiers", {}).items():
            ledger._restore(context_id, hashes)
    except SnapshotError:
        raise
    except (TicketingError, KeyError, TypeError, AttributeError) as exc:
        raise SnapshotError(f"invalid snapshot: {exc}") from exc

    logger.debug("loaded snapshot with %d groups", len(registry.context_ids()))
    return registry, ledger


def _load_group(entry: Dict[str, Any], hasher: HashPrimitive, max_depth: int) -> Group:
    tree = LeanIMT(hasher=hasher, max_depth=max_depth, leaves=entry["leaves"])
    frozen_root = entry.get("frozen_root")
    if frozen_root is not None and frozen_root != tree.root:
        raise SnapshotError(
            f"frozen root of context {entry['context_id']} does not match its leaves"
        )
    return Group(
        context_id=entry["context_id"],
        group_id=entry["group_id"],
        admin=entry["admin"],
        tree=tree,
        frozen_root=frozen_root,
    )


def save_state_file(
    path: PathLike, registry: GroupRegistry, ledger: NullifierLedger
) -> None:
    """
    Write a snapshot atomically (temp file + rename).

    Raises:
        PersistenceError: If the file cannot be written
    """
    target = Path(path)
    tmp = target.with_name(target.name + ".tmp")
    blob = dump_state(registry, ledger)
    try:
        tmp.write_bytes(blob)
        os.replace(tmp, target)
    except OSError as exc:
        logger.error("failed to save state to %s: %s", target, exc)
        raise PersistenceError(f"cannot write state to {target}: {exc}") from exc
    logger.debug("saved state to %s", target)


def load_state_file(
    path: PathLike,
    hasher: Optional[HashPrimitive] = None,
    max_depth: Optional[int] = None,
) -> Tuple[GroupRegistry, NullifierLedger]:
    """Load a snapshot file; a missing file yields empty state."""
    target = Path(path)
    if not target.exists():
        registry = GroupRegistry(
            hasher=hasher,
            max_depth=DEFAULT_TREE_DEPTH if max_depth is None else max_depth,
        )
        return registry, NullifierLedger()
    return load_state(target.read_bytes(), hasher=hasher, max_depth=max_depth)
