"""Stream handling and TCP serving for access submissions."""

from __future__ import annotations

import logging
from typing import Optional

import trio

from .async_coordinator import AsyncVerificationCoordinator
from .constants import DEFAULT_HOST, DEFAULT_VERIFY_TIMEOUT, TOTAL_TIMEOUT
from .errors import ProtocolError
from .handler import handle_access_request_bytes
from .limits import read_frame, write_frame
from .messages import AccessResponse, encode_response

logger = logging.getLogger(__name__)


async def handle_access_stream(
    stream: trio.abc.Stream,
    service: AsyncVerificationCoordinator,
    verify_timeout: Optional[float] = DEFAULT_VERIFY_TIMEOUT,
) -> None:
    """Serve one framed request on ``stream`` and close it."""
    try:
        with trio.fail_after(TOTAL_TIMEOUT):
            request_blob = await read_frame(stream, kind="request")
            response_blob = await handle_access_request_bytes(
                request_blob, service, verify_timeout
            )
            await write_frame(stream, response_blob, kind="response")
    except (ProtocolError, trio.TooSlowError) as exc:
        logger.warning("access stream failed: %s", exc)
        try:
            failure = AccessResponse.failure(f"protocol error: {exc}")
            await write_frame(stream, encode_response(failure), kind="response")
        except (trio.BrokenResourceError, trio.ClosedResourceError, trio.TooSlowError):
            logger.debug("peer went away before error response")
    except (trio.BrokenResourceError, trio.ClosedResourceError):
        logger.debug("peer went away mid-request")
    finally:
        await stream.aclose()


async def serve_access_requests(
    service: AsyncVerificationCoordinator,
    port: int,
    host: str = DEFAULT_HOST,
    *,
    verify_timeout: Optional[float] = DEFAULT_VERIFY_TIMEOUT,
    task_status=trio.TASK_STATUS_IGNORED,
) -> None:
    """Accept framed access requests over TCP until cancelled."""

    async def _handler(stream: trio.SocketStream) -> None:
        await handle_access_stream(stream, service, verify_timeout)

    logger.info("serving access requests on %s:%d", host, port)
    await trio.serve_tcp(_handler, port, host=host, task_status=task_status)
