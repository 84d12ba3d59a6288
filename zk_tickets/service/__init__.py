"""trio service layer: async coordinator and framed TCP exchange."""

from .async_coordinator import AsyncVerificationCoordinator
from .client import exchange, submit_access_request
from .constants import DEFAULT_HOST, DEFAULT_PORT, MSG_V
from .errors import ProtocolError, SchemaError, SizeLimitError
from .handler import handle_access_request_bytes
from .messages import AccessResponse, decode_response, encode_response
from .protocol import handle_access_stream, serve_access_requests

__all__ = [
    "AsyncVerificationCoordinator",
    "AccessResponse",
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "MSG_V",
    "ProtocolError",
    "SchemaError",
    "SizeLimitError",
    "decode_response",
    "encode_response",
    "exchange",
    "handle_access_request_bytes",
    "handle_access_stream",
    "serve_access_requests",
    "submit_access_request",
]
