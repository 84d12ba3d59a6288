from __future__ import annotations

import pytest

from zk_tickets.membership import feature_flags


@pytest.fixture(autouse=True)
def reset_flags(monkeypatch: pytest.MonkeyPatch) -> None:
    feature_flags.set_verifier_type(None)
    monkeypatch.delenv("ZK_TICKETS_VERIFIER", raising=False)
    yield
    feature_flags.set_verifier_type(None)


def test_default() -> None:
    assert feature_flags.get_verifier_type() == "transparent"


def test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ZK_TICKETS_VERIFIER", "SNARK")
    assert feature_flags.get_verifier_type() == "snark"


def test_empty_env_falls_back(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ZK_TICKETS_VERIFIER", "")
    assert feature_flags.get_verifier_type() == "transparent"


def test_invalid_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ZK_TICKETS_VERIFIER", "mock")
    with pytest.raises(ValueError):
        feature_flags.get_verifier_type()


def test_override_and_prefer() -> None:
    feature_flags.set_verifier_type("snark")
    assert feature_flags.get_verifier_type() == "snark"
    assert feature_flags.get_verifier_type(prefer="transparent") == "transparent"
    feature_flags.set_verifier_type(None)
    assert feature_flags.get_verifier_type() == "transparent"


@pytest.mark.parametrize("value", ["groth16", 3])
def test_set_rejects_invalid(value) -> None:
    with pytest.raises(ValueError):
        feature_flags.set_verifier_type(value)
