"""
Length-prefixed framing for access exchanges.

A frame is a 4-byte big-endian length followed by that many bytes of CBOR.
Requests and responses have separate size caps, so a peer cannot make the
other side buffer more than one proof's worth of data.
"""

from __future__ import annotations

import struct
from typing import Optional

import trio

from .constants import (
    MAX_FRAME_BYTES,
    MAX_REQUEST_BYTES,
    MAX_RESPONSE_BYTES,
    READ_TIMEOUT,
    WRITE_TIMEOUT,
)
from .errors import SchemaError, SizeLimitError

_LENGTH = struct.Struct(">I")

FRAME_LIMITS = {
    "request": MAX_REQUEST_BYTES,
    "response": MAX_RESPONSE_BYTES,
}


def frame_limit(kind: Optional[str]) -> int:
    if kind is None:
        return MAX_FRAME_BYTES
    try:
        return FRAME_LIMITS[kind]
    except KeyError:
        raise ValueError(f"unknown frame kind {kind!r}") from None


async def read_exact(
    stream: trio.abc.ReceiveStream, size: int, timeout: float, what: str = "frame"
) -> bytes:
    """Read exactly ``size`` bytes or fail; EOF mid-read is a SchemaError."""
    if size < 0:
        raise SchemaError(f"{what}: negative read size")
    buf = bytearray()
    with trio.fail_after(timeout):
        while len(buf) < size:
            chunk = await stream.receive_some(size - len(buf))
            if not chunk:
                raise SchemaError(
                    f"{what}: connection closed after {len(buf)} of {size} bytes"
                )
            buf += chunk
    return bytes(buf)


async def read_frame(
    stream: trio.abc.ReceiveStream,
    *,
    kind: Optional[str] = None,
    max_bytes: Optional[int] = None,
    timeout: float = READ_TIMEOUT,
) -> bytes:
    what = kind or "frame"
    limit = frame_limit(kind) if max_bytes is None else max_bytes
    (length,) = _LENGTH.unpack(await read_exact(stream, _LENGTH.size, timeout, what))
    if length > limit:
        raise SizeLimitError(f"{what} of {length} bytes exceeds {limit}")
    return await read_exact(stream, length, timeout, what)


async def write_frame(
    stream: trio.abc.SendStream,
    payload: bytes,
    *,
    kind: Optional[str] = None,
    max_bytes: Optional[int] = None,
    timeout: float = WRITE_TIMEOUT,
) -> None:
    what = kind or "frame"
    limit = frame_limit(kind) if max_bytes is None else max_bytes
    if len(payload) > limit:
        raise SizeLimitError(f"{what} of {len(payload)} bytes exceeds {limit}")
    with trio.fail_after(timeout):
        await stream.send_all(_LENGTH.pack(len(payload)) + payload)
