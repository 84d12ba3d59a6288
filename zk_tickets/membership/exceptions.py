"""
Exceptions for group membership and one-time access.

Every failure maps to exactly one kind so callers can tell a malformed
request from a lifecycle violation, a replay, or a rejected proof.
"""


class TicketingError(Exception):
    """Base exception for membership and access errors."""

    pass


# ============================================================================
# VALIDATION (rejected before any mutation)
# ============================================================================


class ValidationError(TicketingError):
    """Malformed or out-of-range input."""

    pass


class FieldElementError(ValidationError):
    """Value is not a canonical field element."""

    pass


class LeafCannotBeZeroError(ValidationError):
    """Zero is reserved as the empty/pass-through sentinel."""

    pass


class IndexOutOfRangeError(ValidationError):
    """Leaf index does not exist in the tree."""

    pass


class DepthTooSmallError(ValidationError):
    """Requested proof depth cannot represent the tree."""

    pass


class InvalidDepthError(ValidationError):
    """Tree depth outside the supported range."""

    pass


class InvalidAdminError(ValidationError):
    """Admin principal is empty or missing."""

    pass


class MalformedRequestError(ValidationError):
    """Access request failed schema validation."""

    pass


# ============================================================================
# STATE
# ============================================================================


class StateError(TicketingError):
    """Operation not valid in the group's current state."""

    pass


class AlreadyInitializedError(StateError):
    """A group already exists for this context."""

    pass


class GroupNotInitializedError(StateError):
    """No group exists for this context."""

    pass


class AlreadyFrozenError(StateError):
    """Group is frozen; membership can no longer change."""

    pass


class GroupNotReadyError(StateError):
    """Group is not frozen yet, so it has no stable root."""

    pass


class LeafAlreadyExistsError(StateError):
    """Leaf is already a member of the tree."""

    pass


class TreeFullError(StateError):
    """Tree reached its maximum depth."""

    pass


# ============================================================================
# AUTHORIZATION / REPLAY / PROOF
# ============================================================================


class AuthorizationError(TicketingError):
    """Caller is not allowed to perform the operation."""

    pass


class UnauthorizedError(AuthorizationError):
    """Caller is not the group admin."""

    pass


class ReplayError(TicketingError):
    """Nullifier was already consumed."""

    pass


class AlreadyUsedError(ReplayError):
    """Ledger already holds this nullifier hash."""

    pass


class DuplicateUseError(ReplayError):
    """Access was already granted for this nullifier hash."""

    pass


class ProofError(TicketingError):
    """Proof was checked and rejected."""

    pass


class InvalidProofError(ProofError):
    """Verifier returned false for the submitted proof."""

    pass


# ============================================================================
# INFRASTRUCTURE
# ============================================================================


class ConfigurationError(TicketingError):
    """Configuration or backend resolution error."""

    pass


class VerifierError(TicketingError):
    """Verifier failed to produce a verdict."""

    pass


class SnapshotError(TicketingError):
    """Persisted state is malformed or inconsistent."""

    pass


class PersistenceError(TicketingError):
    """State could not be written to durable storage."""

    pass
