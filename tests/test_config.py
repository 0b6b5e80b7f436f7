"""Tests for runtime configuration."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from vault_mcp_server.config import ServerConfig


def test_defaults() -> None:
    # Act
    config = ServerConfig.from_env({})

    # Assert
    assert config.enable_websocket is True
    assert config.enable_http is True
    assert config.http_port == 22360
    assert config.heartbeat_interval == 30.0
    assert config.ide_name == "Vault"
    assert config.log_level == "INFO"


def test_environment_overrides() -> None:
    # Arrange
    environ = {
        "VAULT_MCP_HTTP_PORT": "23000",
        "VAULT_MCP_ENABLE_WEBSOCKET": "false",
        "VAULT_MCP_HEARTBEAT_INTERVAL": "2.5",
        "VAULT_MCP_LOG_LEVEL": "debug",
    }

    # Act
    config = ServerConfig.from_env(environ)

    # Assert
    assert config.http_port == 23000
    assert config.enable_websocket is False
    assert config.heartbeat_interval == 2.5
    assert config.log_level == "DEBUG"


def test_explicit_overrides_win_over_environment() -> None:
    # Act
    config = ServerConfig.from_env(
        {"VAULT_MCP_HTTP_PORT": "23000", "VAULT_MCP_IDE_NAME": "FromEnv"},
        http_port=24000,
        ide_name=None,
    )

    # Assert
    assert config.http_port == 24000
    assert config.ide_name == "FromEnv"


@pytest.mark.parametrize(
    "environ",
    [
        {"VAULT_MCP_HTTP_PORT": "70000"},
        {"VAULT_MCP_HEARTBEAT_INTERVAL": "0"},
        {"VAULT_MCP_LOG_LEVEL": "chatty"},
    ],
)
def test_invalid_values_are_rejected(environ: dict[str, str]) -> None:
    with pytest.raises(ValidationError):
        ServerConfig.from_env(environ)
