"""Shared test fixtures."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from pathlib import Path
from typing import Any

import httpx
import pytest

from vault_mcp.protocol import Outcome
from vault_mcp_server.config import ServerConfig
from vault_mcp_server.dual_server import DualServer, StartResult
from vault_mcp_server.host import HostServices
from vault_mcp_server.local_host import LocalFolderHost

Running = tuple[DualServer, StartResult]
ServeFactory = Callable[..., AbstractAsyncContextManager[Running]]


@pytest.fixture()
def anyio_backend() -> str:
    """Run async tests on asyncio only; the transports are asyncio-based."""
    return "asyncio"


@pytest.fixture()
def vault(tmp_path: Path) -> Path:
    """Provide a small vault folder with a few notes."""
    root = tmp_path / "vault"
    (root / "notes").mkdir(parents=True)
    (root / ".settings").mkdir()
    (root / "README.md").write_text("# Vault\nWelcome", encoding="utf-8")
    (root / "notes" / "today.md").write_text(
        "first line\nsecond line\nthird line", encoding="utf-8"
    )
    (root / "notes" / "ideas.md").write_text("idea one\nidea two", encoding="utf-8")
    (root / ".settings" / "app.json").write_text("{}", encoding="utf-8")
    return root


@pytest.fixture()
def host(vault: Path) -> LocalFolderHost:
    """Directory-backed host serving the sample vault."""
    return LocalFolderHost(vault, name="Sample")


@pytest.fixture()
def services(host: LocalFolderHost) -> HostServices:
    return host.services()


@pytest.fixture()
def config_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point discovery at a temporary client configuration directory."""
    path = tmp_path / "claude-config"
    monkeypatch.setenv("CLAUDE_CONFIG_DIR", str(path))
    return path


@pytest.fixture()
def server_config(config_dir: Path) -> ServerConfig:
    """Config binding the HTTP transport to a free port."""
    return ServerConfig(http_port=0, config_dir=config_dir)


@pytest.fixture()
def serve(services: HostServices) -> ServeFactory:
    """Return a context manager that starts and stops a :class:`DualServer`."""

    @asynccontextmanager
    async def _serve(
        config: ServerConfig,
    ) -> AsyncIterator[tuple[DualServer, StartResult]]:
        server = DualServer(config, services)
        result = await server.start()
        try:
            yield server, result
        finally:
            await server.stop()

    return _serve


class ReplyRecorder:
    """Reply callback that records every outcome it receives."""

    def __init__(self) -> None:
        self.outcomes: list[Outcome] = []

    async def __call__(self, outcome: Outcome) -> None:
        self.outcomes.append(outcome)

    @property
    def single(self) -> Outcome:
        assert len(self.outcomes) == 1, self.outcomes
        return self.outcomes[0]


@pytest.fixture()
def recorder() -> ReplyRecorder:
    return ReplyRecorder()


class EventStream:
    """Minimal server-sent events reader over an httpx streaming response."""

    def __init__(self, response: httpx.Response) -> None:
        self._lines = response.aiter_lines()

    async def next_event(self) -> dict[str, str]:
        event: dict[str, str] = {}
        async for line in self._lines:
            if not line:
                if event:
                    return event
                continue
            name, _, value = line.partition(":")
            value = value[1:] if value.startswith(" ") else value
            event[name] = f"{event[name]}\n{value}" if name in event else value
        raise EOFError("event stream ended")

    async def next_message(self) -> dict[str, Any]:
        """Return the JSON payload of the next ``message`` event."""
        while True:
            event = await self.next_event()
            if event.get("event") == "message":
                return json.loads(event["data"])


@pytest.fixture()
def event_stream() -> type[EventStream]:
    return EventStream
