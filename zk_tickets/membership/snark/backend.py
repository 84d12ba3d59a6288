"""SNARK verifier adapter over a compiled verifier extension."""

from __future__ import annotations

import importlib
import os
from pathlib import Path
from types import ModuleType
from typing import Optional, Union

from ..exceptions import ConfigurationError
from ..types import PublicSignals

DEFAULT_MODULE = "semaphore_py"
VERIFY_FUNCTION = "verify_semaphore_bytes"
VK_ENV_VAR = "ZK_TICKETS_VK_PATH"

# Public inputs header: schema_version (u16 LE) || group_id (u64 LE)
PUBLIC_INPUTS_SCHEMA_V = 1
_GROUP_ID_BYTES = 8

VkSource = Union[str, Path, bytes, bytearray]


def encode_public_inputs(group_id: int, signals: PublicSignals) -> bytes:
    """
    Serialize the verifier's public inputs.

    Layout: header followed by root, nullifier_hash, signal, scope as
    32-byte big-endian field elements.
    """
    if isinstance(group_id, bool) or not isinstance(group_id, int) or group_id < 0:
        raise ValueError("group_id must be a non-negative int")
    if group_id >= 2 ** (8 * _GROUP_ID_BYTES):
        raise ValueError("group_id too large")
    header = PUBLIC_INPUTS_SCHEMA_V.to_bytes(2, "little") + group_id.to_bytes(
        _GROUP_ID_BYTES, "little"
    )
    return header + signals.to_bytes()


class SnarkVerifier:
    """
    Verify Groth16 membership proofs via an extension module.

    The module (PyO3 style) must expose
    ``verify_semaphore_bytes(vk: bytes, public_inputs: bytes, proof: bytes) -> bool``.
    Malformed artifacts verify as False; a missing module or verification
    key is a configuration error raised at construction.
    """

    backend_name = "snark"

    def __init__(
        self,
        vk: Optional[VkSource] = None,
        *,
        module_name: str = DEFAULT_MODULE,
    ) -> None:
        self._module = _load_module(module_name)
        self._verify_fn = getattr(self._module, VERIFY_FUNCTION, None)
        if not callable(self._verify_fn):
            raise ConfigurationError(
                f"module {module_name!r} does not provide {VERIFY_FUNCTION}()"
            )
        self._vk = _read_vk(vk)

    def verify(self, group_id: int, signals: PublicSignals, proof: bytes) -> bool:
        if not isinstance(proof, (bytes, bytearray)) or not proof:
            return False
        try:
            public_inputs = encode_public_inputs(group_id, signals)
        except ValueError:
            return False
        return bool(self._verify_fn(self._vk, public_inputs, bytes(proof)))


def _load_module(module_name: str) -> ModuleType:
    try:
        return importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigurationError(
            f"verifier extension {module_name!r} is not installed. Build it "
            "with maturin from the circuits workspace."
        ) from exc


def _read_vk(vk: Optional[VkSource]) -> bytes:
    if vk is None:
        env_path = os.getenv(VK_ENV_VAR)
        if not env_path:
            raise ConfigurationError(
                f"verification key required (pass vk= or set {VK_ENV_VAR})"
            )
        vk = env_path
    if isinstance(vk, (bytes, bytearray)):
        if not vk:
            raise ConfigurationError("verification key cannot be empty")
        return bytes(vk)
    try:
        data = Path(vk).read_bytes()
    except OSError as exc:
        raise ConfigurationError(f"unable to read verification key {vk}") from exc
    if not data:
        raise ConfigurationError(f"verification key {vk} is empty")
    return data
