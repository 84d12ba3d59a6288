"""CBOR response schema for access-request exchange.

Requests on the wire are ``zk_tickets.membership.types.encode_request``
blobs; this module only adds the response side.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import cbor2

from ..membership.events import AccessGranted
from .constants import MAX_ERR_CHARS, MAX_RESPONSE_BYTES, MSG_V
from .errors import SchemaError, SizeLimitError


@dataclass(frozen=True)
class AccessResponse:
    msg_v: int
    ok: bool
    context_id: Optional[int] = None
    nullifier_hash: Optional[int] = None
    signal: Optional[int] = None
    err: Optional[str] = None

    def validate(self) -> None:
        if self.msg_v != MSG_V:
            raise SchemaError("unsupported msg_v")
        if not isinstance(self.ok, bool):
            raise SchemaError("ok must be a bool")
        if self.ok:
            for name in ("context_id", "nullifier_hash", "signal"):
                value = getattr(self, name)
                if isinstance(value, bool) or not isinstance(value, int):
                    raise SchemaError(f"{name} required when ok=True")
            if self.err not in (None, ""):
                raise SchemaError("err must be empty when ok=True")
        else:
            if not isinstance(self.err, str) or not self.err:
                raise SchemaError("err required when ok=False")
            if len(self.err) > MAX_ERR_CHARS:
                raise SchemaError("err too long")

    @classmethod
    def granted(cls, event: AccessGranted) -> "AccessResponse":
        return cls(
            msg_v=MSG_V,
            ok=True,
            context_id=event.context_id,
            nullifier_hash=event.nullifier_hash,
            signal=event.signal,
        )

    @classmethod
    def failure(cls, err: str) -> "AccessResponse":
        return cls(msg_v=MSG_V, ok=False, err=err[:MAX_ERR_CHARS] or "error")


def encode_response(resp: AccessResponse) -> bytes:
    resp.validate()
    payload = {
        "msg_v": resp.msg_v,
        "ok": resp.ok,
        "context_id": resp.context_id,
        "nullifier_hash": resp.nullifier_hash,
        "signal": resp.signal,
        "err": resp.err,
    }
    blob = cbor2.dumps(payload)
    if len(blob) > MAX_RESPONSE_BYTES:
        raise SizeLimitError("response too large")
    return blob


def decode_response(blob: bytes) -> AccessResponse:
    if not isinstance(blob, (bytes, bytearray)):
        raise SchemaError("response blob must be bytes")
    blob_bytes = bytes(blob)
    if len(blob_bytes) > MAX_RESPONSE_BYTES:
        raise SizeLimitError("response too large")
    try:
        payload: Any = cbor2.loads(blob_bytes)
    except Exception as exc:
        raise SchemaError("response is not valid CBOR") from exc
    if not isinstance(payload, dict):
        raise SchemaError("response payload must be a dict")
    resp = AccessResponse(
        msg_v=payload.get("msg_v", -1),
        ok=payload.get("ok"),
        context_id=payload.get("context_id"),
        nullifier_hash=payload.get("nullifier_hash"),
        signal=payload.get("signal"),
        err=payload.get("err"),
    )
    resp.validate()
    return resp
