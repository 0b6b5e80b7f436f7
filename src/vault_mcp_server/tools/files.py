"""File editing tools: ``view``, ``str_replace``, ``create`` and ``insert``."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from vault_mcp.errors import ErrorCode, raise_mcp_error
from vault_mcp.protocol import Reply, Success, text_content
from vault_mcp.tools import (
    ToolCategory,
    ToolDefinition,
    ToolParameters,
    parse_arguments,
)
from vault_mcp_server.host import HostServices
from vault_mcp_server.tools.common import (
    ToolPair,
    host_errors,
    require_path,
    tool_pair,
)


class ViewParams(ToolParameters):
    """Parameters for the view tool."""

    path: str = Field(
        min_length=1,
        description="Path to the file or directory to view (relative to vault root)",
    )
    view_range: list[int] | None = Field(
        default=None,
        description=(
            "Optional [start_line, end_line] to view specific lines "
            "(1-indexed, -1 for end means read to end of file)"
        ),
    )


class StrReplaceParams(ToolParameters):
    """Parameters for the str_replace tool."""

    path: str = Field(
        min_length=1, description="Path to the file to modify (relative to vault root)"
    )
    old_str: str = Field(
        description="The exact text to replace, including whitespace and indentation"
    )
    new_str: str = Field(description="The new text to insert in place of the old text")


class CreateParams(ToolParameters):
    """Parameters for the create tool."""

    path: str = Field(
        min_length=1,
        description="Path of the new file (relative to vault root)",
    )
    file_text: str = Field(description="The content to write to the new file")


class InsertParams(ToolParameters):
    """Parameters for the insert tool."""

    path: str = Field(
        min_length=1, description="Path to the file to modify (relative to vault root)"
    )
    insert_line: int = Field(
        description="Line after which to insert the text (0 for beginning of file)"
    )
    new_str: str = Field(description="The text to insert")


def number_lines(lines: list[str], first: int = 1) -> str:
    """Prefix each line with its 1-based line number."""
    return "\n".join(f"{first + index}: {line}" for index, line in enumerate(lines))


def _directory_listing(files: list[str], path: str) -> list[str] | None:
    """Return the direct children of ``path`` or ``None`` if it is not a folder."""
    if path in ("", "."):
        return [f for f in files if "/" not in f]
    prefix = path if path.endswith("/") else f"{path}/"
    if not path.endswith("/") and not any(f.startswith(prefix) for f in files):
        return None
    return [
        f for f in files if f.startswith(prefix) and "/" not in f[len(prefix) :]
    ]


def view_tool(host: HostServices) -> ToolPair:
    """Create the view tool."""

    async def handler(arguments: dict[str, Any], reply: Reply) -> None:
        params = parse_arguments(ViewParams, arguments)
        path = require_path(host, params.path)
        with host_errors("view file/directory"):
            listing = _directory_listing(host.workspace.list_files(), path)
            if listing is not None:
                text = (
                    "Directory contents:\n" + "\n".join(listing)
                    if listing
                    else "Directory is empty or does not exist"
                )
                await reply(Success(text_content(text)))
                return

            lines = (await host.files.read(path)).split("\n")
        if params.view_range is not None and len(params.view_range) == 2:
            start_line, end_line = params.view_range
            start = max(0, start_line - 1)
            end = len(lines) if end_line == -1 else min(len(lines), end_line)
            text = number_lines(lines[start:end], first=start + 1)
        else:
            text = number_lines(lines)
        await reply(Success(text_content(text)))

    return tool_pair(
        ToolDefinition(
            name="view",
            description=(
                "View the contents of a file or list the contents of a directory "
                "in the vault"
            ),
            category=ToolCategory.FILE,
            parameters_model=ViewParams,
        ),
        handler,
    )


def str_replace_tool(host: HostServices) -> ToolPair:
    """Create the str_replace tool."""

    async def handler(arguments: dict[str, Any], reply: Reply) -> None:
        params = parse_arguments(StrReplaceParams, arguments)
        path = require_path(host, params.path)
        with host_errors("replace text"):
            content = await host.files.read(path)
            matches = content.count(params.old_str) if params.old_str else 0
            if matches == 0:
                raise_mcp_error(
                    ErrorCode.INTERNAL_ERROR, "No match found for replacement text"
                )
            if matches > 1:
                raise_mcp_error(
                    ErrorCode.INTERNAL_ERROR,
                    f"Found {matches} matches for replacement text. Please provide "
                    "more specific text to match exactly one location.",
                )
            await host.files.write(
                path, content.replace(params.old_str, params.new_str, 1)
            )
        await reply(
            Success(
                text_content("Successfully replaced text at exactly one location.")
            )
        )

    return tool_pair(
        ToolDefinition(
            name="str_replace",
            description="Replace specific text in a file with new text",
            category=ToolCategory.FILE,
            parameters_model=StrReplaceParams,
        ),
        handler,
    )


def create_tool(host: HostServices) -> ToolPair:
    """Create the create tool."""

    async def handler(arguments: dict[str, Any], reply: Reply) -> None:
        params = parse_arguments(CreateParams, arguments)
        path = require_path(host, params.path)
        with host_errors("create file"):
            if await host.files.exists(path):
                raise_mcp_error(
                    ErrorCode.INTERNAL_ERROR,
                    "File already exists. Use str_replace to modify existing files.",
                )
            await host.files.write(path, params.file_text)
        await reply(
            Success(text_content(f"Successfully created file: {params.path}"))
        )

    return tool_pair(
        ToolDefinition(
            name="create",
            description="Create a new file with specified content in the vault",
            category=ToolCategory.FILE,
            parameters_model=CreateParams,
        ),
        handler,
    )


def insert_tool(host: HostServices) -> ToolPair:
    """Create the insert tool."""

    async def handler(arguments: dict[str, Any], reply: Reply) -> None:
        params = parse_arguments(InsertParams, arguments)
        path = require_path(host, params.path)
        with host_errors("insert text"):
            lines = (await host.files.read(path)).split("\n")
            if not 0 <= params.insert_line <= len(lines):
                raise_mcp_error(
                    ErrorCode.INTERNAL_ERROR,
                    f"Invalid insert_line {params.insert_line}. "
                    f"Must be between 0 and {len(lines)}",
                )
            lines[params.insert_line : params.insert_line] = params.new_str.split("\n")
            await host.files.write(path, "\n".join(lines))
        await reply(
            Success(
                text_content(
                    f"Successfully inserted text at line {params.insert_line} "
                    f"in {params.path}"
                )
            )
        )

    return tool_pair(
        ToolDefinition(
            name="insert",
            description="Insert text at a specific line number in a file",
            category=ToolCategory.FILE,
            parameters_model=InsertParams,
        ),
        handler,
    )
