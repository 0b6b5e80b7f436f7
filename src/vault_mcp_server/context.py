"""Editor context notifications pushed to every connected client."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from vault_mcp.protocol import Notification
from vault_mcp_server.host import EditorSelection, Position, WorkspaceProvider

SELECTION_CHANGED = "selection_changed"


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CursorPosition(_WireModel):
    line: int = 0
    character: int = 0

    @classmethod
    def from_position(cls, position: Position) -> CursorPosition:
        return cls(line=position.line, character=position.character)


class SelectionRange(_WireModel):
    """Selected range; ``isEmpty`` ranges collapse to the cursor."""

    start: CursorPosition = Field(default_factory=CursorPosition)
    end: CursorPosition = Field(default_factory=CursorPosition)
    is_empty: bool = Field(default=True, alias="isEmpty")


class SelectionChangedParams(_WireModel):
    """Params of the ``selection_changed`` notification."""

    text: str = ""
    file_path: str | None = Field(default=None, alias="filePath")
    file_url: str | None = Field(default=None, alias="fileUrl")
    selection: SelectionRange = Field(default_factory=SelectionRange)


def file_url(workspace: WorkspaceProvider, path: str) -> str:
    """Build the ``file://`` URL of a workspace-relative path."""
    base = workspace.base_path().rstrip("/\\")
    return f"file://{base}/{path}"


def selection_changed_params(workspace: WorkspaceProvider) -> SelectionChangedParams:
    """Describe the active document and editor selection.

    Without an active document both paths are ``None``. Without an editor
    selection the range is empty at 0:0.
    """
    active = workspace.active_file()
    if active is None:
        return SelectionChangedParams()

    selection: EditorSelection | None = workspace.selection()
    if selection is None:
        return SelectionChangedParams(
            file_path=active, file_url=file_url(workspace, active)
        )

    return SelectionChangedParams(
        text=selection.text,
        file_path=active,
        file_url=file_url(workspace, active),
        selection=SelectionRange(
            start=CursorPosition.from_position(selection.start),
            end=CursorPosition.from_position(selection.end),
            is_empty=selection.is_empty,
        ),
    )


def current_file_context(workspace: WorkspaceProvider) -> Notification:
    """Build the ``selection_changed`` notification for the active document."""
    params = selection_changed_params(workspace)
    return Notification(
        method=SELECTION_CHANGED, params=params.model_dump(by_alias=True)
    )
