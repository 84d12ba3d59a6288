"""
Feature flags for selecting the proof verifier.

The transparent verifier does not hide the witness; select "snark" wherever
member privacy matters.
"""

from __future__ import annotations

import os
from typing import Final

_VALID_VERIFIERS: Final[tuple[str, ...]] = ("transparent", "snark")
_DEFAULT_VERIFIER: Final[str] = "transparent"
_ENV_VAR_NAME: Final[str] = "ZK_TICKETS_VERIFIER"

_verifier_override: str | None = None


def _format_valid_options() -> str:
    return ", ".join(_VALID_VERIFIERS)


def _normalize_verifier(value: str | None) -> str | None:
    if value is None:
        return None

    if not isinstance(value, str):
        raise ValueError(
            f"Invalid verifier type: {value!r}. Valid options: {_format_valid_options()}"
        )

    value = value.strip().lower()
    if value == "":
        return None

    if value not in _VALID_VERIFIERS:
        raise ValueError(
            f"Invalid verifier type: {value!r}. Valid options: {_format_valid_options()}"
        )

    return value


def get_verifier_type(prefer: str | None = None) -> str:
    """
    Resolve verifier type in precedence order: prefer, in-memory override,
    environment, default.

    Raises:
        ValueError: If a provided verifier value is invalid.
    """
    preferred = _normalize_verifier(prefer)
    if preferred is not None:
        return preferred

    if _verifier_override is not None:
        return _verifier_override

    env_verifier = _normalize_verifier(os.getenv(_ENV_VAR_NAME))
    if env_verifier is not None:
        return env_verifier

    return _DEFAULT_VERIFIER


def set_verifier_type(value: str | None) -> None:
    """
    Set in-memory verifier override.

    Args:
        value: Verifier type to force, or None to clear the override.

    Raises:
        ValueError: If the value is invalid.
    """
    global _verifier_override
    _verifier_override = _normalize_verifier(value)
