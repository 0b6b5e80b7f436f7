"""Direct file and workspace JSON-RPC methods kept for older clients.

These bypass the tool registries and answer with plain results instead of
tool ``content`` blocks.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from vault_mcp.errors import ErrorCode
from vault_mcp.protocol import Failure, Message, Reply, Success
from vault_mcp.router import LegacyHandler, LegacyMethod
from vault_mcp_server.host import HostServices
from vault_mcp_server.tools.workspace import filter_files

WORKSPACE_TYPE = "vault"


def _params(message: Message) -> dict[str, Any]:
    return message.params if isinstance(message.params, dict) else {}


class LegacyMethods:
    """Implementations of every :class:`~vault_mcp.router.LegacyMethod`."""

    def __init__(self, host: HostServices) -> None:
        """Bind the methods to a host."""
        self.host = host

    def table(self) -> Mapping[LegacyMethod, LegacyHandler]:
        """Return the dispatch table handed to the router."""
        return {
            LegacyMethod.READ_FILE: self.read_file,
            LegacyMethod.WRITE_FILE: self.write_file,
            LegacyMethod.GET_OPEN_FILES: self.get_open_files,
            LegacyMethod.LIST_FILES: self.list_files,
            LegacyMethod.GET_CURRENT_FILE: self.get_current_file,
            LegacyMethod.GET_WORKSPACE_INFO: self.get_workspace_info,
        }

    async def read_file(self, message: Message, reply: Reply) -> None:
        """Answer ``readFile`` with the text of ``params.path``."""
        path = _params(message).get("path")
        if not isinstance(path, str) or not path:
            await reply(Failure(ErrorCode.INVALID_PARAMS, "invalid path parameter"))
            return
        normalized = self.host.normalize_path(path)
        if normalized is None:
            await reply(Failure(ErrorCode.INTERNAL_ERROR, "invalid file path"))
            return
        try:
            content = await self.host.files.read(normalized)
        except Exception as exc:
            await reply(Failure.internal(f"failed to read file: {exc}"))
            return
        await reply(Success(content))

    async def write_file(self, message: Message, reply: Reply) -> None:
        """Answer ``writeFile`` by storing ``params.content`` at ``params.path``."""
        params = _params(message)
        path, content = params.get("path"), params.get("content")
        if not isinstance(path, str) or not path or not isinstance(content, str):
            await reply(Failure(ErrorCode.INVALID_PARAMS, "invalid parameters"))
            return
        normalized = self.host.normalize_path(path)
        if normalized is None:
            await reply(Failure(ErrorCode.INTERNAL_ERROR, "invalid file path"))
            return
        try:
            await self.host.files.write(normalized, content)
        except Exception as exc:
            await reply(Failure.internal(f"failed to write file: {exc}"))
            return
        await reply(Success(True))

    async def get_open_files(self, message: Message, reply: Reply) -> None:
        """Answer ``getOpenFiles`` with the active document, if any."""
        active = self.host.workspace.active_file()
        await reply(Success([active] if active else []))

    async def list_files(self, message: Message, reply: Reply) -> None:
        """Answer ``listFiles``, optionally filtered by a regex ``pattern``."""
        pattern = _params(message).get("pattern")
        try:
            files = filter_files(
                self.host.workspace, pattern if isinstance(pattern, str) else None
            )
        except Exception as exc:
            await reply(Failure.internal(f"failed to list files: {exc}"))
            return
        await reply(Success(files))

    async def get_current_file(self, message: Message, reply: Reply) -> None:
        """Answer ``getCurrentFile`` with the active path or ``None``."""
        await reply(Success(self.host.workspace.active_file()))

    async def get_workspace_info(self, message: Message, reply: Reply) -> None:
        """Answer ``getWorkspaceInfo`` with the vault name, path and size."""
        workspace = self.host.workspace
        await reply(
            Success(
                {
                    "name": workspace.workspace_name(),
                    "path": workspace.base_path(),
                    "fileCount": len(workspace.list_files()),
                    "type": WORKSPACE_TYPE,
                }
            )
        )
