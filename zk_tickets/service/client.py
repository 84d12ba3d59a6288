"""Client utilities for access-request exchange."""

from __future__ import annotations

import trio

from ..membership.types import AccessRequest, encode_request
from .constants import TOTAL_TIMEOUT, WRITE_TIMEOUT
from .limits import read_frame, write_frame
from .messages import AccessResponse, decode_response


async def submit_access_request(
    host: str, port: int, req: AccessRequest, *, timeout: float | None = None
) -> AccessResponse:
    stream = await trio.open_tcp_stream(host, port)
    async with stream:
        return await exchange(stream, req, timeout=timeout)


async def exchange(
    stream: trio.abc.Stream, req: AccessRequest, *, timeout: float | None = None
) -> AccessResponse:
    """Send ``req`` over an open stream and read the response."""
    read_timeout = TOTAL_TIMEOUT if timeout is None else timeout
    write_timeout = WRITE_TIMEOUT if timeout is None else timeout
    await write_frame(
        stream, encode_request(req), kind="request", timeout=write_timeout
    )
    response_blob = await read_frame(stream, kind="response", timeout=read_timeout)
    return decode_response(response_blob)
