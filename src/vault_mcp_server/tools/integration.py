"""Editor-integration tools offered on the WebSocket transport only.

The host has no diff or tab views, so the diff and tab tools acknowledge the
request without doing anything.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from pydantic import Field

from vault_mcp.protocol import Reply, Success, text_content
from vault_mcp.tools import (
    ToolCategory,
    ToolDefinition,
    ToolParameters,
    parse_arguments,
)
from vault_mcp_server.host import HostServices
from vault_mcp_server.tools.common import ToolPair, host_errors, tool_pair
from vault_mcp_server.tools.workspace import NoParams

logger = logging.getLogger(__name__)


class OpenDiffParams(ToolParameters):
    """Parameters for the openDiff tool."""

    old_file_path: str | None = Field(
        default=None, description="Path to the old version of the file"
    )
    new_file_path: str | None = Field(
        default=None, description="Path to the new version of the file"
    )
    new_file_contents: str | None = Field(
        default=None, description="Contents of the new file version"
    )
    tab_name: str | None = Field(default=None, description="Name of the tab to open")


class CloseTabParams(ToolParameters):
    """Parameters for the close_tab tool."""

    tab_name: str | None = Field(default=None, description="Name of the tab to close")


def open_diff_tool(host: HostServices) -> ToolPair:
    """Create the openDiff tool."""

    async def handler(arguments: dict[str, Any], reply: Reply) -> None:
        params = parse_arguments(OpenDiffParams, arguments)
        logger.debug(
            "openDiff requested for %s (tab: %s)", params.old_file_path, params.tab_name
        )
        text = "Diff view opened in vault (no visual diff available)"
        await reply(Success(text_content(text)))

    return tool_pair(
        ToolDefinition(
            name="openDiff",
            description="Open a diff view (acknowledged without a visual diff)",
            category=ToolCategory.IDE,
            parameters_model=OpenDiffParams,
        ),
        handler,
    )


def close_tab_tool(host: HostServices) -> ToolPair:
    """Create the close_tab tool."""

    async def handler(arguments: dict[str, Any], reply: Reply) -> None:
        params = parse_arguments(CloseTabParams, arguments)
        logger.debug("close_tab requested for %s", params.tab_name)
        await reply(Success(text_content("Tab closed successfully")))

    return tool_pair(
        ToolDefinition(
            name="close_tab",
            description="Close a tab (acknowledged without effect)",
            category=ToolCategory.IDE,
            parameters_model=CloseTabParams,
        ),
        handler,
    )


def close_all_diff_tabs_tool(host: HostServices) -> ToolPair:
    """Create the closeAllDiffTabs tool."""

    async def handler(arguments: dict[str, Any], reply: Reply) -> None:
        logger.debug("closeAllDiffTabs requested")
        await reply(Success(text_content("All diff tabs closed successfully")))

    return tool_pair(
        ToolDefinition(
            name="closeAllDiffTabs",
            description="Close all diff tabs (acknowledged without effect)",
            category=ToolCategory.IDE,
            parameters_model=NoParams,
        ),
        handler,
    )


def get_diagnostics_tool(host: HostServices) -> ToolPair:
    """Create the getDiagnostics tool."""

    async def handler(arguments: dict[str, Any], reply: Reply) -> None:
        with host_errors("get diagnostics"):
            system_info = {
                "vaultName": host.workspace.workspace_name(),
                "fileCount": len(host.workspace.list_files()),
                "activeFile": host.workspace.active_file(),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        await reply(Success({"diagnostics": [], "systemInfo": system_info}))

    return tool_pair(
        ToolDefinition(
            name="getDiagnostics",
            description="Get system and vault diagnostic information",
            category=ToolCategory.IDE,
            parameters_model=NoParams,
        ),
        handler,
    )
