"""Name-keyed tool registry used to serve ``tools/list`` and ``tools/call``.

Each transport is served by its own registry instance. Registries are
populated once at startup and only read afterwards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from vault_mcp.errors import ErrorCode, MCPError, ToolRegistrationError
from vault_mcp.protocol import Failure, Reply, Success, text_content
from vault_mcp.tools import ToolCategory, ToolDefinition, ToolImplementation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegisteredTool:
    """Pairing of a tool definition with its implementation."""

    definition: ToolDefinition
    implementation: ToolImplementation


class ToolRegistry:
    """In-memory registry and dispatcher for MCP tools."""

    def __init__(self, label: str = "tools") -> None:
        """Initialize an empty registry.

        Args:
            label: Name used in log messages to tell registries apart.

        """
        self.label = label
        self._tools: dict[str, RegisteredTool] = {}

    def register(
        self, definition: ToolDefinition, implementation: ToolImplementation
    ) -> None:
        """Register a tool definition together with its implementation.

        Args:
            definition: Client-facing description of the tool.
            implementation: Async handler implementing the tool.

        Raises:
            ToolRegistrationError: If the names differ or the name is already
                registered.

        """
        if definition.name != implementation.name:
            raise ToolRegistrationError(
                f"Tool definition name '{definition.name}' doesn't match "
                f"implementation name '{implementation.name}'"
            )
        if definition.name in self._tools:
            raise ToolRegistrationError(
                f"Tool '{definition.name}' is already registered"
            )
        self._tools[definition.name] = RegisteredTool(definition, implementation)

    def register_tools(
        self, *pairs: tuple[ToolDefinition, ToolImplementation]
    ) -> None:
        """Register multiple (definition, implementation) pairs at once."""
        for definition, implementation in pairs:
            self.register(definition, implementation)

    def registered_names(self) -> list[str]:
        """List the names of registered tools in registration order."""
        return list(self._tools)

    def has_tool(self, name: str) -> bool:
        """Return whether ``name`` is registered."""
        return name in self._tools

    def definitions(
        self, category: ToolCategory | str | None = None
    ) -> list[dict[str, Any]]:
        """Return client-facing tool definitions.

        Args:
            category: Optional internal category to filter on.

        Returns:
            Tool metadata dictionaries with the category stripped.

        """
        wanted = ToolCategory(category) if category is not None else None
        return [
            tool.definition.metadata()
            for tool in self._tools.values()
            if wanted is None or tool.definition.category is wanted
        ]

    async def call(self, name: object, arguments: Any, reply: Reply) -> None:
        """Invoke a registered tool and answer through ``reply``.

        Unknown tools are reported in-band as a successful result whose
        content says the tool is not registered. Handler failures are turned
        into JSON-RPC errors and never propagate.
        """
        tool = self._tools.get(name) if isinstance(name, str) else None
        if tool is None:
            logger.warning("Unknown tool called on %s registry: %s", self.label, name)
            await reply(Success(text_content(f"Tool '{name}' is not registered")))
            return

        try:
            await tool.implementation.handler(arguments or {}, reply)
        except MCPError as error:
            logger.debug("Tool %s failed: %s", name, error.message)
            await reply(Failure.from_error(error))
        except Exception as exc:
            logger.exception("Tool %s raised", name)
            await reply(
                Failure(ErrorCode.INTERNAL_ERROR, f"failed to call tool {name}: {exc}")
            )

    def to_catalog(self) -> dict[str, dict[str, Any]]:
        """Produce a catalog for discovery, keyed by tool name."""
        return {
            name: {
                **tool.definition.metadata(),
                "category": tool.definition.category.value,
            }
            for name, tool in self._tools.items()
        }
