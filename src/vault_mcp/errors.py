"""Custom error types for the vault MCP protocol core."""

from __future__ import annotations

import errno
from enum import IntEnum
from typing import NoReturn, TypedDict


class ErrorCode(IntEnum):
    """JSON-RPC 2.0 error codes used by the server."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603


class MCPErrorPayload(TypedDict, total=False):
    """Structured JSON payload for JSON-RPC errors."""

    code: int
    message: str
    data: object


class MCPError(Exception):
    """Structured JSON-RPC error raised by handlers and tools."""

    def __init__(self, code: int, message: str, data: object | None = None) -> None:
        """Create a structured error carrying a JSON-RPC code."""
        super().__init__(message)
        self.code = int(code)
        self.message = message
        self.data = data

    def to_dict(self) -> MCPErrorPayload:
        """Return the JSON-RPC ``error`` member for this error."""
        payload: MCPErrorPayload = {"code": self.code, "message": self.message}
        if self.data is not None:
            payload["data"] = self.data
        return payload


def raise_mcp_error(code: int, message: str, data: object | None = None) -> NoReturn:
    """Raise an :class:`MCPError` with a structured payload."""
    raise MCPError(code=code, message=message, data=data)


class ToolRegistrationError(ValueError):
    """A tool definition and implementation could not be paired."""


class TransportStartError(Exception):
    """A transport failed to bind or start listening.

    Attributes:
        transport: Short transport tag (``"ws"`` or ``"http"``).
        port: Port the transport attempted to bind, if known.

    """

    def __init__(self, transport: str, port: int | None, message: str) -> None:
        """Create a startup fault for ``transport``."""
        super().__init__(message)
        self.transport = transport
        self.port = port


class PortInUseError(TransportStartError):
    """The requested port is already bound by another process."""


class PermissionDeniedError(TransportStartError):
    """The process is not allowed to bind the requested port."""


def classify_bind_error(
    error: OSError, transport: str, port: int | None
) -> TransportStartError:
    """Map an ``OSError`` raised while binding to a typed startup fault.

    Args:
        error: The error raised by ``bind``/``listen``.
        transport: Short transport tag.
        port: Port that was being bound.

    Returns:
        A :class:`PortInUseError`, :class:`PermissionDeniedError` or a plain
        :class:`TransportStartError` with user guidance in its message.

    """
    if error.errno == errno.EADDRINUSE:
        return PortInUseError(
            transport,
            port,
            f"Port {port} is already in use. Another instance may be running; "
            "choose a different port.",
        )
    if error.errno == errno.EACCES:
        return PermissionDeniedError(
            transport,
            port,
            f"Permission denied for port {port}. Try using a port above 1024.",
        )
    return TransportStartError(
        transport, port, f"Failed to start {transport} transport: {error}"
    )


class SessionError(Exception):
    """Base class for streaming session lookup failures."""

    status_code = 400

    def __init__(self, session_id: str, message: str) -> None:
        """Create a session error for ``session_id``."""
        super().__init__(message)
        self.session_id = session_id


class UnknownSessionError(SessionError):
    """The session id was never issued by this server."""

    status_code = 404


class SessionClosedError(SessionError):
    """The session existed but its stream has been closed."""

    status_code = 410
