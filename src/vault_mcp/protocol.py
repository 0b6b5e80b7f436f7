"""JSON-RPC envelope models and the reply contract shared by both transports.

Frames are decoded into :class:`Request` or :class:`Notification` models. A
handler answers a request by awaiting a :data:`Reply` callback with either a
:class:`Success` or a :class:`Failure`; each transport supplies its own reply
callback and is responsible for re-encoding the outcome on the wire.
"""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictFloat,
    StrictInt,
    StrictStr,
    ValidationError,
)

from vault_mcp.errors import ErrorCode, MCPError

JSONRPC_VERSION = "2.0"
PROTOCOL_VERSION = "2024-11-05"

# Booleans and non-finite numbers are not valid ids.
RequestId = Union[
    StrictInt, Annotated[StrictFloat, Field(allow_inf_nan=False)], StrictStr
]


class Envelope(BaseModel):
    """Common fields of every inbound JSON-RPC envelope."""

    model_config = ConfigDict(extra="ignore")

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    method: str
    params: Any = None


class Request(Envelope):
    """A method call that expects exactly one response."""

    id: RequestId


class Notification(Envelope):
    """A fire-and-forget message that never receives a response."""

    def to_wire(self) -> dict[str, Any]:
        """Return the notification as a JSON-ready dictionary."""
        payload: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "method": self.method}
        if self.params is not None:
            payload["params"] = self.params
        return payload


Message = Union[Request, Notification]


@dataclass(frozen=True)
class Success:
    """Successful reply carrying a JSON-serializable result."""

    result: Any


@dataclass(frozen=True)
class Failure:
    """Error reply carrying a JSON-RPC error code and message."""

    code: int
    message: str

    @classmethod
    def from_error(cls, error: MCPError) -> Failure:
        """Build a failure from a structured :class:`MCPError`."""
        return cls(code=error.code, message=error.message)

    @classmethod
    def internal(cls, message: str) -> Failure:
        """Build an internal-error failure."""
        return cls(code=ErrorCode.INTERNAL_ERROR, message=message)


Outcome = Union[Success, Failure]
Reply = Callable[[Outcome], Awaitable[None]]


def parse_envelope(data: object) -> Message | None:
    """Validate a decoded JSON value as a request or notification.

    Envelopes carrying a non-null ``id`` are requests, the rest notifications.
    Responses sent by a client and anything else that does not validate
    return ``None``.
    """
    if not isinstance(data, dict) or not isinstance(data.get("method"), str):
        return None
    try:
        if data.get("id") is not None:
            return Request.model_validate(data)
        return Notification.model_validate(data)
    except ValidationError:
        return None


def decode_frame(raw: str | bytes) -> Message | None:
    """Decode one frame holding a single JSON document.

    Returns:
        The parsed envelope, or ``None`` for malformed JSON or a document that
        is not a request or notification.

    """
    try:
        data = json.loads(raw)
    except (ValueError, UnicodeDecodeError):
        return None
    return parse_envelope(data)


def response_payload(request_id: RequestId | None, outcome: Outcome) -> dict[str, Any]:
    """Build a response envelope holding either ``result`` or ``error``."""
    payload: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "id": request_id}
    if isinstance(outcome, Failure):
        payload["error"] = {"code": int(outcome.code), "message": outcome.message}
    else:
        payload["result"] = outcome.result
    return payload


def encode_response(request_id: RequestId | None, outcome: Outcome) -> str:
    """Serialize a response envelope to compact JSON."""
    return json.dumps(response_payload(request_id, outcome), separators=(",", ":"))


def encode_notification(notification: Notification) -> str:
    """Serialize a notification envelope to compact JSON."""
    return json.dumps(notification.to_wire(), separators=(",", ":"))


def text_content(text: str) -> dict[str, Any]:
    """Wrap ``text`` in the ``content`` shape used by tool results."""
    return {"content": [{"type": "text", "text": text}]}
