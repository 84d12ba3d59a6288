"""
Unit tests for the SNARK verifier adapter.

The compiled extension is replaced by an in-memory module registered under
a test-only name.
"""

from __future__ import annotations

import sys
import types

import pytest

from zk_tickets.membership.exceptions import ConfigurationError
from zk_tickets.membership.interfaces import Verifier
from zk_tickets.membership.snark import backend
from zk_tickets.membership.types import PublicSignals

FAKE_MODULE = "zk_tickets_fake_semaphore_ext"
SIGNALS = PublicSignals(root=11, nullifier_hash=22, signal=33, scope=44)


@pytest.fixture
def fake_extension(monkeypatch: pytest.MonkeyPatch):
    calls = []
    module = types.ModuleType(FAKE_MODULE)

    def verify_semaphore_bytes(vk, public_inputs, proof):
        calls.append((vk, public_inputs, proof))
        return proof == b"good-proof"

    module.verify_semaphore_bytes = verify_semaphore_bytes
    monkeypatch.setitem(sys.modules, FAKE_MODULE, module)
    return calls


def test_encode_public_inputs_layout() -> None:
    blob = backend.encode_public_inputs(5, SIGNALS)
    assert blob[:2] == (1).to_bytes(2, "little")
    assert blob[2:10] == (5).to_bytes(8, "little")
    assert blob[10:] == SIGNALS.to_bytes()
    assert len(blob) == 10 + 128


def test_encode_public_inputs_rejects_bad_group() -> None:
    with pytest.raises(ValueError):
        backend.encode_public_inputs(-1, SIGNALS)
    with pytest.raises(ValueError):
        backend.encode_public_inputs(2**64, SIGNALS)


def test_verify_delegates_to_extension(fake_extension) -> None:
    verifier = backend.SnarkVerifier(b"vk-bytes", module_name=FAKE_MODULE)
    assert isinstance(verifier, Verifier)
    assert verifier.verify(5, SIGNALS, b"good-proof") is True
    assert verifier.verify(5, SIGNALS, b"bad-proof") is False
    vk, public_inputs, proof = fake_extension[0]
    assert vk == b"vk-bytes"
    assert public_inputs == backend.encode_public_inputs(5, SIGNALS)
    assert proof == b"good-proof"


def test_malformed_inputs_are_false(fake_extension) -> None:
    verifier = backend.SnarkVerifier(b"vk-bytes", module_name=FAKE_MODULE)
    assert verifier.verify(5, SIGNALS, b"") is False
    assert verifier.verify(5, SIGNALS, "text") is False
    assert verifier.verify(-1, SIGNALS, b"good-proof") is False
    assert fake_extension == []


def test_vk_from_file_and_env(fake_extension, tmp_path, monkeypatch) -> None:
    vk_path = tmp_path / "membership.vk"
    vk_path.write_bytes(b"file-vk")
    verifier = backend.SnarkVerifier(vk_path, module_name=FAKE_MODULE)
    verifier.verify(0, SIGNALS, b"good-proof")
    assert fake_extension[-1][0] == b"file-vk"

    monkeypatch.setenv(backend.VK_ENV_VAR, str(vk_path))
    verifier = backend.SnarkVerifier(module_name=FAKE_MODULE)
    verifier.verify(0, SIGNALS, b"good-proof")
    assert fake_extension[-1][0] == b"file-vk"


def test_missing_vk_is_configuration_error(fake_extension, tmp_path, monkeypatch) -> None:
    monkeypatch.delenv(backend.VK_ENV_VAR, raising=False)
    with pytest.raises(ConfigurationError):
        backend.SnarkVerifier(module_name=FAKE_MODULE)
    with pytest.raises(ConfigurationError):
        backend.SnarkVerifier(tmp_path / "missing.vk", module_name=FAKE_MODULE)
    with pytest.raises(ConfigurationError):
        backend.SnarkVerifier(b"", module_name=FAKE_MODULE)


def test_missing_module_is_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        backend.SnarkVerifier(b"vk", module_name="zk_tickets_no_such_extension")


def test_module_without_function(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setitem(sys.modules, "zk_tickets_empty_ext", types.ModuleType("x"))
    with pytest.raises(ConfigurationError):
        backend.SnarkVerifier(b"vk", module_name="zk_tickets_empty_ext")
