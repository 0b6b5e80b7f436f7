"""Tool registration helpers for the vault MCP server."""

from __future__ import annotations

from vault_mcp_server.host import HostServices
from vault_mcp_server.tools.common import ToolPair
from vault_mcp_server.tools.files import (
    create_tool,
    insert_tool,
    str_replace_tool,
    view_tool,
)
from vault_mcp_server.tools.integration import (
    close_all_diff_tabs_tool,
    close_tab_tool,
    get_diagnostics_tool,
    open_diff_tool,
)
from vault_mcp_server.tools.workspace import (
    get_current_file_tool,
    get_workspace_files_tool,
)


def build_shared_tools(host: HostServices) -> list[ToolPair]:
    """Instantiate the tools offered on both transports."""
    return [
        get_current_file_tool(host),
        get_workspace_files_tool(host),
        view_tool(host),
        str_replace_tool(host),
        create_tool(host),
        insert_tool(host),
    ]


def build_integration_tools(host: HostServices) -> list[ToolPair]:
    """Instantiate the editor-integration tools offered on WebSocket only."""
    return [
        open_diff_tool(host),
        close_tab_tool(host),
        close_all_diff_tabs_tool(host),
        get_diagnostics_tool(host),
    ]
