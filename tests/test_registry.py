"""Tests for the tool registry."""

from __future__ import annotations

from typing import Any

import pytest
from pydantic import Field

from vault_mcp.errors import ErrorCode, MCPError, ToolRegistrationError
from vault_mcp.protocol import Failure, Reply, Success, text_content
from vault_mcp.registry import ToolRegistry
from vault_mcp.tools import (
    ToolCategory,
    ToolDefinition,
    ToolImplementation,
    ToolParameters,
    parse_arguments,
)


class EchoParams(ToolParameters):
    """Parameters for the echo tool."""

    message: str = Field(description="Text to echo back")


async def _echo(arguments: dict[str, Any], reply: Reply) -> None:
    params = parse_arguments(EchoParams, arguments)
    await reply(Success(text_content(params.message)))


async def _explode(arguments: dict[str, Any], reply: Reply) -> None:
    raise RuntimeError("boom")


def _definition(
    name: str = "echo", category: ToolCategory = ToolCategory.GENERAL
) -> ToolDefinition:
    return ToolDefinition(
        name=name,
        description=f"{name} tool",
        category=category,
        parameters_model=EchoParams,
    )


class TestRegistration:
    """Pairing integrity checks."""

    def test_register_and_list_tools(self) -> None:
        """Registers a tool and ensures it appears in the listing."""
        # Arrange
        registry = ToolRegistry()

        # Act
        registry.register(_definition(), ToolImplementation("echo", _echo))

        # Assert
        assert registry.registered_names() == ["echo"]
        assert registry.has_tool("echo")
        assert registry.definitions() == [
            {
                "name": "echo",
                "description": "echo tool",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "message": {
                            "description": "Text to echo back",
                            "title": "Message",
                            "type": "string",
                        }
                    },
                    "required": ["message"],
                },
            }
        ]

    def test_rejects_mismatched_names(self) -> None:
        """Definition and implementation names must agree."""
        # Arrange
        registry = ToolRegistry()

        # Act / Assert
        with pytest.raises(ToolRegistrationError):
            registry.register(_definition(), ToolImplementation("other", _echo))
        assert registry.registered_names() == []

    def test_prevents_duplicate_tool_names(self) -> None:
        """Duplicate tool registrations raise a ValueError."""
        # Arrange
        registry = ToolRegistry()
        registry.register(_definition(), ToolImplementation("echo", _echo))

        # Act / Assert
        with pytest.raises(ValueError):
            registry.register(_definition(), ToolImplementation("echo", _echo))

    def test_definitions_filter_by_category(self) -> None:
        """Category filtering never leaks the category to clients."""
        # Arrange
        registry = ToolRegistry()
        registry.register_tools(
            (_definition("echo"), ToolImplementation("echo", _echo)),
            (
                _definition("diff", ToolCategory.IDE),
                ToolImplementation("diff", _echo),
            ),
        )

        # Act
        ide_tools = registry.definitions(ToolCategory.IDE)
        by_value = registry.definitions("ide-specific")

        # Assert
        assert [tool["name"] for tool in ide_tools] == ["diff"]
        assert by_value == ide_tools
        assert all("category" not in tool for tool in registry.definitions())

    def test_catalog_keeps_category(self) -> None:
        # Arrange
        registry = ToolRegistry()
        registry.register(_definition(), ToolImplementation("echo", _echo))

        # Act
        catalog = registry.to_catalog()

        # Assert
        assert catalog["echo"]["category"] == "general"
        assert catalog["echo"]["inputSchema"]["required"] == ["message"]


class TestCall:
    """Dispatching tool calls through the registry."""

    @pytest.mark.anyio()
    async def test_calls_registered_tool(self, recorder: Any) -> None:
        # Arrange
        registry = ToolRegistry()
        registry.register(_definition(), ToolImplementation("echo", _echo))

        # Act
        await registry.call("echo", {"message": "hi"}, recorder)

        # Assert
        assert recorder.single == Success(text_content("hi"))

    @pytest.mark.anyio()
    async def test_unknown_tool_is_reported_in_band(self, recorder: Any) -> None:
        """Unknown tools produce a successful result naming the tool."""
        # Arrange
        registry = ToolRegistry()

        # Act
        await registry.call("missing", {}, recorder)

        # Assert
        assert recorder.single == Success(
            text_content("Tool 'missing' is not registered")
        )

    @pytest.mark.anyio()
    async def test_invalid_arguments_become_invalid_params(
        self, recorder: Any
    ) -> None:
        # Arrange
        registry = ToolRegistry()
        registry.register(_definition(), ToolImplementation("echo", _echo))

        # Act
        await registry.call("echo", {"message": 3}, recorder)

        # Assert
        outcome = recorder.single
        assert isinstance(outcome, Failure)
        assert outcome.code == ErrorCode.INVALID_PARAMS

    @pytest.mark.anyio()
    async def test_handler_exception_becomes_internal_error(
        self, recorder: Any
    ) -> None:
        """Unexpected handler failures never propagate out of the registry."""
        # Arrange
        registry = ToolRegistry()
        registry.register(
            _definition("explode"), ToolImplementation("explode", _explode)
        )

        # Act
        await registry.call("explode", None, recorder)

        # Assert
        assert recorder.single == Failure(
            ErrorCode.INTERNAL_ERROR, "failed to call tool explode: boom"
        )

    @pytest.mark.anyio()
    async def test_mcp_error_keeps_its_code(self, recorder: Any) -> None:
        # Arrange
        async def _reject(arguments: dict[str, Any], reply: Reply) -> None:
            raise MCPError(ErrorCode.INVALID_PARAMS, "nope")

        registry = ToolRegistry()
        registry.register(_definition("reject"), ToolImplementation("reject", _reject))

        # Act
        await registry.call("reject", {}, recorder)

        # Assert
        assert recorder.single == Failure(ErrorCode.INVALID_PARAMS, "nope")
