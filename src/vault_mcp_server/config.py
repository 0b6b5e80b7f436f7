"""Runtime configuration for the dual-transport server."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_HTTP_PORT = 22360
DEFAULT_HEARTBEAT_INTERVAL = 30.0
ENV_PREFIX = "VAULT_MCP_"

_ENV_FIELDS = (
    "http_port",
    "enable_websocket",
    "enable_http",
    "heartbeat_interval",
    "ide_name",
    "log_level",
)


class ServerConfig(BaseModel):
    """Validated settings for :class:`~vault_mcp_server.dual_server.DualServer`.

    Attributes:
        enable_websocket: Start the WebSocket transport.
        enable_http: Start the streaming-HTTP transport.
        http_port: Loopback port for the HTTP transport; ``0`` picks a free one.
        heartbeat_interval: Seconds between SSE ``ping`` events.
        ide_name: Name advertised in the discovery record.
        server_name: Name reported in ``initialize``.
        server_version: Version reported in ``initialize``.
        config_dir: Explicit client configuration directory. When unset the
            directory is resolved from the environment.
        log_level: Logging level name used by the command-line entry point.
    """

    model_config = ConfigDict(extra="forbid")

    enable_websocket: bool = True
    enable_http: bool = True
    http_port: int = Field(default=DEFAULT_HTTP_PORT, ge=0, le=65535)
    heartbeat_interval: float = Field(default=DEFAULT_HEARTBEAT_INTERVAL, gt=0)
    ide_name: str = Field(default="Vault", min_length=1)
    server_name: str = "vault-mcp"
    server_version: str = "1.0.0"
    config_dir: Path | None = None
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level '{value}'")
        return level

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, **overrides: Any
    ) -> ServerConfig:
        """Build a config from ``VAULT_MCP_*`` variables and explicit overrides.

        Explicit keyword overrides take precedence over the environment.
        ``None`` overrides are ignored so unset command-line flags fall
        through.

        Raises:
            pydantic.ValidationError: If any value fails validation.

        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for name in _ENV_FIELDS:
            raw = env.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None and raw != "":
                values[name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(values)
