"""
Verifier factory.

Verifier classes are registered by import path and loaded lazily, so an
optional backend (the compiled SNARK extension) only has to be present when
it is actually selected.
"""

from __future__ import annotations

import importlib
import logging
from typing import Any, Final

from .exceptions import ConfigurationError
from .feature_flags import get_verifier_type
from .interfaces import Verifier

logger = logging.getLogger(__name__)

VERIFIER_REGISTRY: Final[dict[str, str]] = {
    "transparent": "zk_tickets.membership.adapters.transparent.TransparentVerifier",
    "snark": "zk_tickets.membership.snark.backend.SnarkVerifier",
}


def _format_valid_options() -> str:
    return ", ".join(sorted(VERIFIER_REGISTRY.keys()))


def _normalize_verifier_name(value: str | None, *, source: str) -> str | None:
    if value is None or value == "":
        return None

    if not isinstance(value, str) or value not in VERIFIER_REGISTRY:
        raise ValueError(
            f"Invalid verifier name from {source}: {value!r}. "
            f"Valid options: {_format_valid_options()}"
        )

    return value


def _load_verifier_class(verifier_name: str) -> type:
    import_path = VERIFIER_REGISTRY[verifier_name]
    module_path, _, class_name = import_path.rpartition(".")
    if not module_path or not class_name:
        raise ValueError(
            f"Invalid verifier import path for {verifier_name!r}: {import_path!r}"
        )

    try:
        module = importlib.import_module(module_path)
    except ModuleNotFoundError as exc:
        raise ImportError(
            f"Unable to import verifier module {module_path!r} for {verifier_name!r}"
        ) from exc

    try:
        verifier_cls = getattr(module, class_name)
    except AttributeError as exc:
        raise ImportError(
            f"Verifier class {class_name!r} not found in module {module_path!r}"
        ) from exc

    if not isinstance(verifier_cls, type):
        raise TypeError(f"Verifier reference {import_path!r} did not resolve to a class")

    return verifier_cls


def _resolve_verifier_name(
    *, prefer: str | None = None, override: str | None = None
) -> str:
    resolved_override = _normalize_verifier_name(override, source="override")
    if resolved_override is not None:
        return resolved_override

    resolved_prefer = _normalize_verifier_name(prefer, source="prefer")
    if resolved_prefer is not None:
        return resolved_prefer

    resolved_flag = get_verifier_type()
    if resolved_flag not in VERIFIER_REGISTRY:
        raise ValueError(
            f"Invalid verifier name from feature flags: {resolved_flag!r}. "
            f"Valid options: {_format_valid_options()}"
        )
    return resolved_flag


def get_verifier(
    *, prefer: str | None = None, override: str | None = None, **kwargs: Any
) -> Verifier:
    """
    Return a verifier instance based on feature flags.

    Args:
        prefer: Optional verifier name hint.
        override: Optional verifier name override (testing only).
        **kwargs: Passed to the verifier constructor (e.g. hasher, vk).

    Raises:
        ValueError: If a verifier name is invalid.
        ImportError: If the verifier class cannot be imported.
        ConfigurationError: If the verifier cannot be constructed.
        TypeError: If the instance does not implement Verifier.
    """
    verifier_name = _resolve_verifier_name(prefer=prefer, override=override)
    verifier_cls = _load_verifier_class(verifier_name)
    try:
        verifier = verifier_cls(**kwargs)
    except TypeError as exc:
        raise ConfigurationError(
            f"Invalid options for verifier {verifier_name!r}: {exc}"
        ) from exc

    if not isinstance(verifier, Verifier):
        raise TypeError(f"Verifier instance {verifier!r} does not implement Verifier")

    logger.info("using %s verifier", verifier_name)
    return verifier
