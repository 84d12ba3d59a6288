"""Wire constants for access-request exchange."""

from __future__ import annotations

from ..membership.config import MAX_REQUEST_BYTES

MSG_V = 1
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 7461

MAX_ERR_CHARS = 256
MAX_RESPONSE_BYTES = 1024
MAX_FRAME_BYTES = max(MAX_REQUEST_BYTES, MAX_RESPONSE_BYTES)

READ_TIMEOUT = 5.0
WRITE_TIMEOUT = 5.0
TOTAL_TIMEOUT = 60.0
DEFAULT_VERIFY_TIMEOUT = 30.0
