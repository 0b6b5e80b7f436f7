"""Tests for request routing."""

from __future__ import annotations

from typing import Any

import pytest

from vault_mcp.errors import ErrorCode
from vault_mcp.protocol import (
    PROTOCOL_VERSION,
    Failure,
    Message,
    Notification,
    Reply,
    Request,
    Success,
    text_content,
)
from vault_mcp.registry import ToolRegistry
from vault_mcp.router import LegacyMethod, Router, TransportKind
from vault_mcp.tools import (
    ToolCategory,
    ToolDefinition,
    ToolImplementation,
    ToolParameters,
)


async def _double_reply(arguments: dict[str, Any], reply: Reply) -> None:
    await reply(Success(text_content("first")))
    await reply(Success(text_content("second")))


async def _silent(arguments: dict[str, Any], reply: Reply) -> None:
    return None


def _registry(*names: str) -> ToolRegistry:
    handlers = {"double": _double_reply, "silent": _silent}
    registry = ToolRegistry()
    for name in names:
        registry.register(
            ToolDefinition(name, f"{name} tool", ToolCategory.GENERAL, ToolParameters),
            ToolImplementation(name, handlers[name]),
        )
    return registry


def _router(**kwargs: Any) -> Router:
    return Router(
        {
            TransportKind.WS: _registry("double", "silent"),
            TransportKind.HTTP: _registry("silent"),
        },
        **kwargs,
    )


def _request(method: str, params: Any = None, request_id: int = 1) -> Request:
    return Request(id=request_id, method=method, params=params)


class TestConstruction:
    """Dispatch tables are validated up front."""

    def test_missing_registry_is_rejected(self) -> None:
        # Act / Assert
        with pytest.raises(ValueError):
            Router({TransportKind.WS: ToolRegistry()})

    def test_incomplete_legacy_table_is_rejected(self) -> None:
        # Arrange
        async def handler(message: Message, reply: Reply) -> None:
            await reply(Success(None))

        # Act / Assert
        with pytest.raises(ValueError):
            _router(legacy={LegacyMethod.READ_FILE: handler})


class TestProtocolMethods:
    """Static protocol answers."""

    @pytest.mark.anyio()
    async def test_initialize(self, recorder: Any) -> None:
        # Arrange
        router = _router(server_name="vault", server_version="9.9")

        # Act
        await router.dispatch(
            _request("initialize", {"protocolVersion": "2024-11-05"}),
            recorder,
            TransportKind.WS,
        )

        # Assert
        result = recorder.single.result
        assert result["protocolVersion"] == PROTOCOL_VERSION
        assert result["serverInfo"] == {"name": "vault", "version": "9.9"}
        assert result["capabilities"]["tools"] == {"listChanged": False}
        assert result["capabilities"]["resources"] == {
            "subscribe": False,
            "listChanged": False,
        }

    @pytest.mark.anyio()
    @pytest.mark.parametrize(
        ("method", "expected"),
        [
            ("ping", "pong"),
            ("prompts/list", {"prompts": []}),
            ("resources/list", {"resources": []}),
        ],
    )
    async def test_static_methods(
        self, recorder: Any, method: str, expected: object
    ) -> None:
        # Act
        await _router().dispatch(_request(method), recorder, TransportKind.HTTP)

        # Assert
        assert recorder.single == Success(expected)

    @pytest.mark.anyio()
    async def test_unknown_method(self, recorder: Any) -> None:
        # Act
        await _router().dispatch(_request("nope"), recorder, TransportKind.WS)

        # Assert
        assert recorder.single == Failure(
            ErrorCode.METHOD_NOT_FOUND, "method not implemented"
        )

    @pytest.mark.anyio()
    async def test_notifications_are_never_answered(self, recorder: Any) -> None:
        # Act
        await _router().dispatch(
            Notification(method="nope"), recorder, TransportKind.WS
        )
        await _router().dispatch(
            Notification(method="ping"), recorder, TransportKind.WS
        )

        # Assert
        assert recorder.outcomes == []


class TestTools:
    """Tool methods use the registry of the source transport."""

    @pytest.mark.anyio()
    async def test_tools_list_depends_on_source(self, recorder: Any) -> None:
        # Arrange
        router = _router()

        # Act
        await router.dispatch(_request("tools/list"), recorder, TransportKind.WS)
        await router.dispatch(_request("tools/list"), recorder, TransportKind.HTTP)

        # Assert
        ws_result, http_result = recorder.outcomes
        assert [t["name"] for t in ws_result.result["tools"]] == ["double", "silent"]
        assert [t["name"] for t in http_result.result["tools"]] == ["silent"]

    @pytest.mark.anyio()
    async def test_tool_missing_from_source_registry(self, recorder: Any) -> None:
        """A WebSocket-only tool is unknown when called over HTTP."""
        # Act
        await _router().dispatch(
            _request("tools/call", {"name": "double"}), recorder, TransportKind.HTTP
        )

        # Assert
        assert recorder.single == Success(
            text_content("Tool 'double' is not registered")
        )

    @pytest.mark.anyio()
    async def test_tools_call_requires_a_name(self, recorder: Any) -> None:
        # Act
        await _router().dispatch(
            _request("tools/call", {"arguments": {}}), recorder, TransportKind.WS
        )

        # Assert
        outcome = recorder.single
        assert isinstance(outcome, Failure)
        assert outcome.code == ErrorCode.INVALID_PARAMS

    @pytest.mark.anyio()
    async def test_second_reply_is_dropped(self, recorder: Any) -> None:
        """A request receives exactly one response."""
        # Act
        await _router().dispatch(
            _request("tools/call", {"name": "double"}), recorder, TransportKind.WS
        )

        # Assert
        assert recorder.single == Success(text_content("first"))

    @pytest.mark.anyio()
    async def test_missing_reply_becomes_internal_error(self, recorder: Any) -> None:
        # Act
        await _router().dispatch(
            _request("tools/call", {"name": "silent"}), recorder, TransportKind.WS
        )

        # Assert
        outcome = recorder.single
        assert isinstance(outcome, Failure)
        assert outcome.code == ErrorCode.INTERNAL_ERROR


class _Integration:
    def __init__(self) -> None:
        self.seen: list[tuple[str, TransportKind]] = []

    async def handle(
        self, message: Message, reply: Reply, source: TransportKind
    ) -> bool:
        self.seen.append((message.method, source))
        return message.method in {"ide_connected", "ping"}


class TestIntegrationHandler:
    """The integration handler is consulted before anything else."""

    @pytest.mark.anyio()
    async def test_handled_notification_gets_no_reply(self, recorder: Any) -> None:
        # Arrange
        integration = _Integration()
        router = _router(integration=integration)

        # Act
        await router.dispatch(
            Notification(method="ide_connected", params={"pid": 42}),
            recorder,
            TransportKind.WS,
        )

        # Assert
        assert integration.seen == [("ide_connected", TransportKind.WS)]
        assert recorder.outcomes == []

    @pytest.mark.anyio()
    async def test_handled_request_still_gets_one_reply(self, recorder: Any) -> None:
        """Integration methods take precedence over protocol methods."""
        # Arrange
        router = _router(integration=_Integration())

        # Act
        await router.dispatch(_request("ping"), recorder, TransportKind.WS)

        # Assert
        assert recorder.single == Success({})

    @pytest.mark.anyio()
    async def test_unhandled_messages_fall_through(self, recorder: Any) -> None:
        # Arrange
        integration = _Integration()
        router = _router(integration=integration)

        # Act
        await router.dispatch(_request("prompts/list"), recorder, TransportKind.HTTP)

        # Assert
        assert integration.seen == [("prompts/list", TransportKind.HTTP)]
        assert recorder.single == Success({"prompts": []})
