"""Shared helpers for the built-in tools."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from vault_mcp.errors import ErrorCode, MCPError, raise_mcp_error
from vault_mcp.tools import ToolDefinition, ToolHandler, ToolImplementation
from vault_mcp_server.host import HostServices

ToolPair = tuple[ToolDefinition, ToolImplementation]


def tool_pair(definition: ToolDefinition, handler: ToolHandler) -> ToolPair:
    """Bind ``handler`` to ``definition`` under the same name."""
    return definition, ToolImplementation(name=definition.name, handler=handler)


def require_path(host: HostServices, path: str) -> str:
    """Normalize a client path or raise an MCP-friendly error."""
    normalized = host.normalize_path(path)
    if normalized is None:
        raise_mcp_error(ErrorCode.INTERNAL_ERROR, "invalid file path")
    return normalized


@contextmanager
def host_errors(action: str) -> Iterator[None]:
    """Turn unexpected host failures into ``failed to <action>`` errors."""
    try:
        yield
    except MCPError:
        raise
    except Exception as exc:
        raise_mcp_error(ErrorCode.INTERNAL_ERROR, f"failed to {action}: {exc}")
