"""Request/response handler for access submissions."""

from __future__ import annotations

import logging
from typing import Optional

import trio

from ..membership.exceptions import TicketingError
from ..membership.types import decode_request
from .async_coordinator import AsyncVerificationCoordinator
from .constants import DEFAULT_VERIFY_TIMEOUT
from .messages import AccessResponse, encode_response

logger = logging.getLogger(__name__)


def _describe(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}"


async def handle_access_request_bytes(
    request_blob: bytes,
    service: AsyncVerificationCoordinator,
    verify_timeout: Optional[float] = DEFAULT_VERIFY_TIMEOUT,
) -> bytes:
    """
    Decode a request, run it through ``service`` and encode the outcome.

    Domain failures become ``ok=False`` responses; only programming errors
    propagate.
    """
    try:
        req = decode_request(request_blob)
    except TicketingError as exc:
        return encode_response(AccessResponse.failure(f"bad request: {exc}"))

    try:
        granted = await service.verify_access(req, timeout=verify_timeout)
    except trio.TooSlowError:
        return encode_response(AccessResponse.failure("VerifierError: timed out"))
    except TicketingError as exc:
        logger.debug("context %d: request failed: %s", req.context_id, exc)
        return encode_response(AccessResponse.failure(_describe(exc)))
    return encode_response(AccessResponse.granted(granted))
