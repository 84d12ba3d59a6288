"""Capabilities the core consumes from external collaborators."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from .types import PublicSignals


@runtime_checkable
class Verifier(Protocol):
    """
    Zero-knowledge proof check, treated as a pure black box.

    ``verify`` must be side-effect free and deterministic: the same inputs
    always give the same answer. It confirms that the prover knows secrets
    whose leaf is under ``signals.root`` and that ``signals.nullifier_hash``
    was derived from those secrets and ``signals.scope``.
    """

    def verify(self, group_id: int, signals: PublicSignals, proof: bytes) -> bool:
        ...
