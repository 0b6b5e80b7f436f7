"""Protocol core for the vault MCP server."""

from vault_mcp.errors import ErrorCode, MCPError, ToolRegistrationError
from vault_mcp.protocol import Failure, Notification, Request, Success
from vault_mcp.registry import ToolRegistry
from vault_mcp.router import Router, TransportKind
from vault_mcp.tools import ToolCategory, ToolDefinition, ToolImplementation

__all__ = [
    "ErrorCode",
    "Failure",
    "MCPError",
    "Notification",
    "Request",
    "Router",
    "Success",
    "ToolCategory",
    "ToolDefinition",
    "ToolImplementation",
    "ToolRegistrationError",
    "ToolRegistry",
    "TransportKind",
]
