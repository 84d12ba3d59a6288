"""
Randomness and comparison helpers for identity secrets.
"""

import hmac
import os
import secrets

from .config import FIELD_ELEMENT_BYTES, FIELD_MODULUS


def _validate_field_modulus():
    """
    Validate FIELD_MODULUS is reasonable.

    Raises:
        ValueError: If FIELD_MODULUS is invalid
    """
    if FIELD_MODULUS <= 0:
        raise ValueError(f"Invalid FIELD_MODULUS: {FIELD_MODULUS}")

    if FIELD_MODULUS < 2**128:
        raise ValueError(f"FIELD_MODULUS too small (< 2^128): {FIELD_MODULUS}")

    if FIELD_MODULUS % 2 == 0:
        raise ValueError("FIELD_MODULUS must be odd")


# Fail fast on import
_validate_field_modulus()


# ============================================================================
# RANDOMNESS SOURCE (Fork-Safe)
# ============================================================================


class RandomnessSource:
    """
    Cryptographically secure randomness with fork detection.

    Prevents secret reuse if the process forks after seeding.

    Example:
        >>> rng = RandomnessSource()
        >>> secret = rng.get_random_field_element()
    """

    def __init__(self):
        """Initialize randomness source with fork detection."""
        self._pid = os.getpid()
        self._rng = secrets.SystemRandom()

    def _check_fork(self) -> None:
        if os.getpid() != self._pid:
            self.__init__()

    def get_random_scalar(self, max_value: int) -> int:
        """
        Get random scalar in [0, max_value).

        Args:
            max_value: Upper bound (exclusive)
        """
        self._check_fork()
        return self._rng.randrange(0, max_value)

    def get_random_bytes(self, n: int) -> bytes:
        """Get n cryptographically secure random bytes."""
        self._check_fork()
        return secrets.token_bytes(n)

    def get_random_field_element(self) -> int:
        """
        Get a random non-zero field element.

        Returns:
            Random scalar in [1, FIELD_MODULUS)
        """
        self._check_fork()
        return self._rng.randrange(1, FIELD_MODULUS)


def constant_time_equal(left: int, right: int) -> bool:
    """Compare two field elements without early exit."""
    return hmac.compare_digest(
        left.to_bytes(FIELD_ELEMENT_BYTES, "big"),
        right.to_bytes(FIELD_ELEMENT_BYTES, "big"),
    )
