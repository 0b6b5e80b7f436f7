"""Both transports running side by side behind one router."""

from __future__ import annotations

import asyncio
import json
import socket
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest
from websockets.asyncio.client import ClientConnection, connect

from vault_mcp.errors import PortInUseError
from vault_mcp.protocol import Notification
from vault_mcp.router import TransportKind
from vault_mcp.tools import ToolCategory
from vault_mcp_server.config import ServerConfig
from vault_mcp_server.dual_server import DualServer
from vault_mcp_server.host import HostServices


async def _eventually(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    async def wait() -> None:
        while not predicate():
            await asyncio.sleep(0.02)

    await asyncio.wait_for(wait(), timeout)


async def _ping(ws: ClientConnection) -> None:
    await ws.send(json.dumps({"jsonrpc": "2.0", "id": 0, "method": "ping"}))
    await asyncio.wait_for(ws.recv(), 5)


@pytest.mark.anyio()
async def test_broadcast_reaches_every_client(
    serve: Any, server_config: ServerConfig, event_stream: Any
) -> None:
    # Arrange
    notification = Notification(method="selection_changed", params={"text": "hi"})

    async with serve(server_config) as (server, result):
        ws_url = f"ws://127.0.0.1:{result.ws_port}"
        base = f"http://127.0.0.1:{result.http_port}"
        async with connect(ws_url) as first, connect(ws_url) as second:
            await _ping(first)
            await _ping(second)
            async with httpx.AsyncClient(base_url=base, timeout=5) as client:
                async with client.stream("GET", "/sse") as response:
                    stream = event_stream(response)
                    await stream.next_event()
                    await _eventually(lambda: server.client_count == 3)

                    # Act
                    delivered = await server.broadcast(notification)
                    received = [
                        json.loads(await asyncio.wait_for(first.recv(), 5)),
                        json.loads(await asyncio.wait_for(second.recv(), 5)),
                        await stream.next_message(),
                    ]

    # Assert
    assert delivered == 3
    expected = {
        "jsonrpc": "2.0",
        "method": "selection_changed",
        "params": {"text": "hi"},
    }
    assert received == [expected, expected, expected]


@pytest.mark.anyio()
async def test_late_joiner_gets_no_replay(
    serve: Any, server_config: ServerConfig
) -> None:
    async with serve(server_config) as (server, result):
        await server.broadcast(Notification(method="selection_changed", params={}))
        async with connect(f"ws://127.0.0.1:{result.ws_port}") as ws:
            await _ping(ws)

            # Act / Assert
            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(ws.recv(), 0.2)


@pytest.mark.anyio()
async def test_http_port_in_use_degrades_to_websocket(
    serve: Any, config_dir: Path
) -> None:
    """A taken HTTP port is reported while the WebSocket side keeps working."""
    # Arrange
    blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    blocker.bind(("127.0.0.1", 0))
    blocker.listen()
    port = blocker.getsockname()[1]
    config = ServerConfig(http_port=port, config_dir=config_dir)

    try:
        async with serve(config) as (server, result):
            async with connect(f"ws://127.0.0.1:{result.ws_port}") as ws:
                # Act
                await ws.send(
                    json.dumps({"jsonrpc": "2.0", "id": 1, "method": "ping"})
                )
                pong = json.loads(await asyncio.wait_for(ws.recv(), 5))
            info = server.server_info()
    finally:
        blocker.close()

    # Assert
    assert result.started
    assert result.degraded
    assert result.http_port is None
    assert isinstance(result.failures[TransportKind.HTTP], PortInUseError)
    assert result.failures[TransportKind.HTTP].port == port
    assert pong["result"] == "pong"
    assert info["http"]["running"] is False
    assert info["websocket"]["running"] is True


@pytest.mark.anyio()
async def test_stop_removes_discovery_record(
    serve: Any, server_config: ServerConfig
) -> None:
    async with serve(server_config) as (server, result):
        lock = server.publisher.path
        assert lock is not None
        assert lock.exists()

        # Act
        await server.stop()

    # Assert
    assert not lock.exists()
    assert server.server_info()["websocket"]["running"] is False


def test_tool_summary_and_categories(
    services: HostServices, server_config: ServerConfig
) -> None:
    # Arrange
    server = DualServer(server_config, services)

    # Act
    summary = server.tool_summary()
    ide_tools = server.tools_by_category(ToolCategory.IDE)
    http_ide_tools = server.tools_by_category(ToolCategory.IDE, TransportKind.HTTP)

    # Assert
    assert summary["ws"]["total"] == 10
    assert summary["http"]["total"] == 6
    assert summary["ws"]["categories"]["ide-specific"] == 4
    assert summary["http"]["categories"]["file"] == 4
    assert {tool["name"] for tool in ide_tools} == {
        "openDiff",
        "close_tab",
        "closeAllDiffTabs",
        "getDiagnostics",
    }
    assert http_ide_tools == []
    assert server.client_count == 0
