"""Workspace tools: ``get_current_file`` and ``get_workspace_files``."""

from __future__ import annotations

import re
from typing import Any

from pydantic import Field

from vault_mcp.protocol import Reply, Success, text_content
from vault_mcp.tools import (
    ToolCategory,
    ToolDefinition,
    ToolParameters,
    parse_arguments,
)
from vault_mcp_server.host import HostServices, WorkspaceProvider
from vault_mcp_server.tools.common import ToolPair, host_errors, tool_pair


class NoParams(ToolParameters):
    """Tools that take no arguments."""


class WorkspaceFilesParams(ToolParameters):
    """Parameters for the get_workspace_files tool."""

    pattern: str | None = Field(
        default=None, description="Optional regular expression to filter files"
    )


def filter_files(workspace: WorkspaceProvider, pattern: str | None) -> list[str]:
    """List workspace files, keeping those matching ``pattern`` when given.

    Raises:
        re.error: If ``pattern`` is not a valid regular expression.

    """
    files = workspace.list_files()
    if not pattern:
        return files
    regex = re.compile(pattern)
    return [path for path in files if regex.search(path)]


def get_current_file_tool(host: HostServices) -> ToolPair:
    """Create the get_current_file tool."""

    async def handler(arguments: dict[str, Any], reply: Reply) -> None:
        active = host.workspace.active_file()
        text = f"Current file: {active}" if active else "No file currently active"
        await reply(Success(text_content(text)))

    return tool_pair(
        ToolDefinition(
            name="get_current_file",
            description="Get the currently active file in the vault",
            category=ToolCategory.WORKSPACE,
            parameters_model=NoParams,
        ),
        handler,
    )


def get_workspace_files_tool(host: HostServices) -> ToolPair:
    """Create the get_workspace_files tool."""

    async def handler(arguments: dict[str, Any], reply: Reply) -> None:
        params = parse_arguments(WorkspaceFilesParams, arguments)
        with host_errors("list files"):
            files = filter_files(host.workspace, params.pattern)
        await reply(Success(text_content("Files in vault:\n" + "\n".join(files))))

    return tool_pair(
        ToolDefinition(
            name="get_workspace_files",
            description="List all files in the vault",
            category=ToolCategory.WORKSPACE,
            parameters_model=WorkspaceFilesParams,
        ),
        handler,
    )
