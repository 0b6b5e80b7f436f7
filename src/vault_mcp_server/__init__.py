"""Dual-transport MCP server exposing a note vault to agent clients."""

from vault_mcp_server.config import ServerConfig
from vault_mcp_server.dual_server import DualServer, StartResult
from vault_mcp_server.host import EditorSelection, HostServices, Position
from vault_mcp_server.local_host import LocalFolderHost

__all__ = [
    "DualServer",
    "EditorSelection",
    "HostServices",
    "LocalFolderHost",
    "Position",
    "ServerConfig",
    "StartResult",
]
