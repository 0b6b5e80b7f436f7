"""Interfaces to the host application the server exposes to agent clients.

The server never touches the host directly. Tools, legacy methods and context
notifications go through the narrow providers bundled in :class:`HostServices`.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

PathNormalizer = Callable[[str], str | None]


@dataclass(frozen=True)
class Position:
    """Zero-based line/character position inside a document."""

    line: int = 0
    character: int = 0


@dataclass(frozen=True)
class EditorSelection:
    """Selected text in the active editor.

    An empty ``text`` means there is no selection and ``start``/``end`` both
    point at the cursor.
    """

    text: str = ""
    start: Position = Position()
    end: Position = Position()

    @property
    def is_empty(self) -> bool:
        """Whether nothing is selected."""
        return not self.text


@runtime_checkable
class FileProvider(Protocol):
    """Async access to documents addressed by workspace-relative paths."""

    async def read(self, path: str) -> str:
        """Return the text of ``path``."""
        ...

    async def write(self, path: str, content: str) -> None:
        """Replace the text of ``path``, creating it if needed."""
        ...

    async def exists(self, path: str) -> bool:
        """Return whether ``path`` names an existing document."""
        ...


@runtime_checkable
class WorkspaceProvider(Protocol):
    """Introspection of the workspace and the active editor."""

    def workspace_name(self) -> str: ...

    def base_path(self) -> str: ...

    def list_files(self) -> list[str]:
        """Return every document path, relative to the workspace root."""
        ...

    def active_file(self) -> str | None: ...

    def selection(self) -> EditorSelection | None: ...


def normalize_vault_path(path: str) -> str | None:
    """Turn a client-supplied path into a workspace-relative one.

    A single leading ``/`` is stripped. Paths containing ``..`` or ``~`` are
    rejected.

    Returns:
        The normalized path, or ``None`` if the path is not acceptable.

    """
    cleaned = path[1:] if path.startswith("/") else path
    if ".." in cleaned or "~" in cleaned:
        return None
    return cleaned


@dataclass
class HostServices:
    """Bundle of host collaborators handed to tools and handlers."""

    files: FileProvider
    workspace: WorkspaceProvider
    normalize_path: PathNormalizer = normalize_vault_path
