"""Tool definitions and implementations for the vault MCP server."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError

from vault_mcp.errors import ErrorCode, MCPError
from vault_mcp.protocol import Reply

ToolHandler = Callable[[dict[str, Any], Reply], Awaitable[None]]

ParamsT = TypeVar("ParamsT", bound="ToolParameters")


class ToolCategory(str, Enum):
    """Internal grouping of tools; never exposed to clients."""

    GENERAL = "general"
    FILE = "file"
    WORKSPACE = "workspace"
    IDE = "ide-specific"


class ToolParameters(BaseModel):
    """Base parameters schema for MCP tools."""

    model_config = ConfigDict(extra="ignore")


@dataclass(frozen=True)
class ToolDefinition:
    """Description of a tool that can be registered with a registry.

    Attributes:
        name: Unique name of the tool.
        description: Human-readable description of the tool purpose.
        category: Internal category used for filtering listings.
        parameters_model: Pydantic model describing the tool arguments.
    """

    name: str
    description: str
    category: ToolCategory
    parameters_model: type[ToolParameters]

    def input_schema(self) -> dict[str, Any]:
        """Return the JSON schema advertised as ``inputSchema``."""
        schema = self.parameters_model.model_json_schema()
        input_schema: dict[str, Any] = {
            "type": "object",
            "properties": schema.get("properties", {}),
        }
        if schema.get("required"):
            input_schema["required"] = schema["required"]
        return input_schema

    def metadata(self) -> dict[str, Any]:
        """Return the client-facing description of the tool.

        The category is internal and left out.
        """
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema(),
        }

    def validate(self, arguments: dict[str, Any] | None) -> ToolParameters:
        """Validate incoming tool arguments against the parameters model.

        Raises:
            MCPError: With ``INVALID_PARAMS`` if validation fails.

        """
        return parse_arguments(self.parameters_model, arguments)


@dataclass(frozen=True)
class ToolImplementation:
    """Async handler bound to the name of the tool it implements."""

    name: str
    handler: ToolHandler


def parse_arguments(model: type[ParamsT], arguments: object) -> ParamsT:
    """Validate raw tool arguments into ``model``.

    Args:
        model: Parameters model to validate against.
        arguments: Raw ``arguments`` member of a ``tools/call`` request.

    Raises:
        MCPError: With ``INVALID_PARAMS`` when the arguments do not validate.

    Returns:
        The validated parameters model.

    """
    try:
        return model.model_validate(arguments or {})
    except ValidationError as error:
        raise MCPError(
            ErrorCode.INVALID_PARAMS, "invalid parameters", str(error)
        ) from error
