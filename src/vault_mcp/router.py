"""Request routing shared by the WebSocket and streaming-HTTP transports.

The router resolves a decoded envelope in a fixed order: the pluggable
integration handler first, then the protocol methods, then the legacy
file/workspace methods, and finally a "method not found" error. Every request
is answered exactly once through the reply callback supplied by the transport;
notifications are never answered.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from enum import Enum
from typing import Any, Protocol, TypeVar

from vault_mcp.errors import ErrorCode, MCPError
from vault_mcp.protocol import (
    PROTOCOL_VERSION,
    Failure,
    Message,
    Outcome,
    Reply,
    Request,
    Success,
)
from vault_mcp.registry import ToolRegistry

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


class TransportKind(str, Enum):
    """Tag naming the transport a message arrived on."""

    WS = "ws"
    HTTP = "http"


class ProtocolMethod(str, Enum):
    """Protocol-level methods answered directly by the router."""

    INITIALIZE = "initialize"
    PING = "ping"
    TOOLS_LIST = "tools/list"
    TOOLS_CALL = "tools/call"
    PROMPTS_LIST = "prompts/list"
    RESOURCES_LIST = "resources/list"


class LegacyMethod(str, Enum):
    """Direct file/workspace methods kept for older clients."""

    READ_FILE = "readFile"
    WRITE_FILE = "writeFile"
    GET_OPEN_FILES = "getOpenFiles"
    LIST_FILES = "listFiles"
    GET_CURRENT_FILE = "getCurrentFile"
    GET_WORKSPACE_INFO = "getWorkspaceInfo"


LegacyHandler = Callable[[Message, Reply], Awaitable[None]]
ProtocolHandler = Callable[[Message, Reply, TransportKind], Awaitable[None]]


class IntegrationHandler(Protocol):
    """Sub-handler consulted before any other routing."""

    async def handle(
        self, message: Message, reply: Reply, source: TransportKind
    ) -> bool:
        """Handle ``message`` and return ``True`` if it was consumed."""
        ...


def _lookup(enum_cls: type[E], method: str) -> E | None:
    try:
        return enum_cls(method)
    except ValueError:
        return None


def _require_complete(table: Mapping[E, object], enum_cls: type[E], what: str) -> None:
    missing = [member.value for member in enum_cls if member not in table]
    if missing:
        raise ValueError(f"{what} table is missing handlers for {missing}")


class _SingleReply:
    """Reply wrapper enforcing one response per request and none otherwise."""

    def __init__(self, message: Message, reply: Reply) -> None:
        self._message = message
        self._reply = reply
        self.replied = False

    @property
    def expects_reply(self) -> bool:
        return isinstance(self._message, Request)

    async def __call__(self, outcome: Outcome) -> None:
        if not self.expects_reply:
            logger.debug("Dropping reply to notification %s", self._message.method)
            return
        if self.replied:
            logger.warning(
                "Dropping duplicate reply for %s (id=%s)",
                self._message.method,
                getattr(self._message, "id", None),
            )
            return
        self.replied = True
        await self._reply(outcome)


class Router:
    """Single dispatch entry point for both transports."""

    def __init__(
        self,
        registries: Mapping[TransportKind, ToolRegistry],
        *,
        integration: IntegrationHandler | None = None,
        legacy: Mapping[LegacyMethod, LegacyHandler] | None = None,
        server_name: str = "vault-mcp",
        server_version: str = "1.0.0",
    ) -> None:
        """Create a router.

        Args:
            registries: Tool registry serving each transport kind.
            integration: Optional sub-handler consulted before anything else.
            legacy: Optional handlers for every :class:`LegacyMethod`.
            server_name: Name reported in ``initialize``.
            server_version: Version reported in ``initialize``.

        Raises:
            ValueError: If a transport kind has no registry or a dispatch
                table does not cover its method set.

        """
        _require_complete(registries, TransportKind, "Tool registry")
        self._registries = dict(registries)
        self._integration = integration
        self._server_info = {"name": server_name, "version": server_version}

        self._protocol: dict[ProtocolMethod, ProtocolHandler] = {
            ProtocolMethod.INITIALIZE: self._initialize,
            ProtocolMethod.PING: self._ping,
            ProtocolMethod.TOOLS_LIST: self._tools_list,
            ProtocolMethod.TOOLS_CALL: self._tools_call,
            ProtocolMethod.PROMPTS_LIST: self._prompts_list,
            ProtocolMethod.RESOURCES_LIST: self._resources_list,
        }
        _require_complete(self._protocol, ProtocolMethod, "Protocol method")

        self._legacy: dict[LegacyMethod, LegacyHandler] = {}
        if legacy is not None:
            _require_complete(legacy, LegacyMethod, "Legacy method")
            self._legacy = dict(legacy)

    def registry_for(self, source: TransportKind) -> ToolRegistry:
        """Return the registry serving ``source``."""
        return self._registries[source]

    async def dispatch(
        self, message: Message, reply: Reply, source: TransportKind
    ) -> None:
        """Route ``message`` and answer through ``reply``; never raises."""
        logger.debug("Dispatching %s from %s", message.method, source.value)
        guarded = _SingleReply(message, reply)
        try:
            await self._route(message, guarded, source)
        except MCPError as error:
            await guarded(Failure.from_error(error))
        except Exception as exc:
            logger.exception("Handler for %s raised", message.method)
            await guarded(
                Failure.internal(f"failed to handle {message.method}: {exc}")
            )

        if guarded.expects_reply and not guarded.replied:
            logger.error("No reply produced for %s", message.method)
            await guarded(Failure.internal(f"no reply produced for {message.method}"))

    async def _route(
        self, message: Message, reply: _SingleReply, source: TransportKind
    ) -> None:
        if self._integration is not None and await self._integration.handle(
            message, reply, source
        ):
            if reply.expects_reply and not reply.replied:
                await reply(Success({}))
            return

        protocol_method = _lookup(ProtocolMethod, message.method)
        if protocol_method is not None:
            await self._protocol[protocol_method](message, reply, source)
            return

        legacy_method = _lookup(LegacyMethod, message.method)
        if legacy_method is not None and legacy_method in self._legacy:
            await self._legacy[legacy_method](message, reply)
            return

        logger.warning("Unknown method called: %s", message.method)
        await reply(Failure(ErrorCode.METHOD_NOT_FOUND, "method not implemented"))

    def initialize_result(self) -> dict[str, Any]:
        """Return the static ``initialize`` result."""
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {
                "roots": {"listChanged": False},
                "tools": {"listChanged": False},
                "resources": {"subscribe": False, "listChanged": False},
                "prompts": {"listChanged": False},
            },
            "serverInfo": dict(self._server_info),
        }

    async def _initialize(
        self, message: Message, reply: Reply, source: TransportKind
    ) -> None:
        params = message.params if isinstance(message.params, dict) else {}
        logger.info(
            "Client initialize over %s (client=%s, protocol=%s)",
            source.value,
            params.get("clientInfo"),
            params.get("protocolVersion"),
        )
        await reply(Success(self.initialize_result()))

    async def _ping(
        self, message: Message, reply: Reply, source: TransportKind
    ) -> None:
        await reply(Success("pong"))

    async def _tools_list(
        self, message: Message, reply: Reply, source: TransportKind
    ) -> None:
        await reply(Success({"tools": self.registry_for(source).definitions()}))

    async def _tools_call(
        self, message: Message, reply: Reply, source: TransportKind
    ) -> None:
        params = message.params if isinstance(message.params, dict) else {}
        name = params.get("name")
        if not isinstance(name, str) or not name:
            await reply(
                Failure(ErrorCode.INVALID_PARAMS, "tools/call requires a tool name")
            )
            return
        await self.registry_for(source).call(name, params.get("arguments"), reply)

    async def _prompts_list(
        self, message: Message, reply: Reply, source: TransportKind
    ) -> None:
        await reply(Success({"prompts": []}))

    async def _resources_list(
        self, message: Message, reply: Reply, source: TransportKind
    ) -> None:
        await reply(Success({"resources": []}))
