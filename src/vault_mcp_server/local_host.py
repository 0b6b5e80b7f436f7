"""Directory-backed host used by the command line and the test-suite."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from vault_mcp_server.host import EditorSelection, HostServices

logger = logging.getLogger(__name__)


class LocalFolderHost:
    """Serve a folder on disk as a workspace.

    Implements both :class:`~vault_mcp_server.host.FileProvider` and
    :class:`~vault_mcp_server.host.WorkspaceProvider`. Blocking file I/O runs
    in worker threads. The "active editor" is whatever was last passed to
    :meth:`set_active`.
    """

    def __init__(self, root: Path | str, name: str | None = None) -> None:
        """Create a host rooted at ``root``.

        Raises:
            NotADirectoryError: If ``root`` is not an existing directory.

        """
        self.root = Path(root).resolve()
        if not self.root.is_dir():
            raise NotADirectoryError(f"Workspace root is not a directory: {self.root}")
        self.name = name or self.root.name
        self._active: str | None = None
        self._selection: EditorSelection | None = None

    def services(self) -> HostServices:
        """Bundle this host as :class:`HostServices`."""
        return HostServices(files=self, workspace=self)

    def set_active(
        self, path: str | None, selection: EditorSelection | None = None
    ) -> None:
        """Record the active document and its editor selection."""
        self._active = path
        self._selection = selection if path is not None else None

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if not target.is_relative_to(self.root):
            raise PermissionError(f"Path escapes the workspace root: {path}")
        return target

    def _read(self, path: str) -> str:
        return self._resolve(path).read_text(encoding="utf-8")

    def _write(self, path: str, content: str) -> None:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")

    async def read(self, path: str) -> str:
        """Return the UTF-8 text of ``path``."""
        return await asyncio.to_thread(self._read, path)

    async def write(self, path: str, content: str) -> None:
        """Write ``content`` to ``path``, creating parent folders."""
        await asyncio.to_thread(self._write, path, content)
        logger.debug("Wrote %d characters to %s", len(content), path)

    async def exists(self, path: str) -> bool:
        """Whether ``path`` names an existing file."""
        target = self._resolve(path)
        return await asyncio.to_thread(target.is_file)

    def workspace_name(self) -> str:
        """Return the display name of the vault."""
        return self.name

    def base_path(self) -> str:
        """Return the absolute root folder."""
        return str(self.root)

    def list_files(self) -> list[str]:
        """List every visible file as a sorted, root-relative POSIX path."""
        files = []
        for path in self.root.rglob("*"):
            relative = path.relative_to(self.root)
            # Hidden folders hold host settings, not documents.
            if path.is_file() and not any(p.startswith(".") for p in relative.parts):
                files.append(relative.as_posix())
        return sorted(files)

    def active_file(self) -> str | None:
        """Return the path last passed to :meth:`set_active`."""
        return self._active

    def selection(self) -> EditorSelection | None:
        """Return the selection last passed to :meth:`set_active`."""
        return self._selection
