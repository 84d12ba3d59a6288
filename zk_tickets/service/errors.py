"""Protocol error types."""

from ..membership.exceptions import TicketingError


class ProtocolError(TicketingError):
    """Base error for access exchange protocol issues."""


class SchemaError(ProtocolError):
    """Raised when a message fails schema validation."""


class SizeLimitError(ProtocolError):
    """Raised when a message exceeds configured size limits."""
