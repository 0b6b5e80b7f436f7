"""Orchestrator running the WebSocket and streaming-HTTP transports together."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from vault_mcp.errors import TransportStartError
from vault_mcp.protocol import Notification
from vault_mcp.registry import ToolRegistry
from vault_mcp.router import Router, TransportKind
from vault_mcp.tools import ToolCategory
from vault_mcp_server.config import ServerConfig
from vault_mcp_server.context import current_file_context
from vault_mcp_server.discovery import DiscoveryPublisher
from vault_mcp_server.host import HostServices
from vault_mcp_server.http_transport import HttpTransport
from vault_mcp_server.ide_handler import IdeIntegrationHandler
from vault_mcp_server.legacy import LegacyMethods
from vault_mcp_server.tools import build_integration_tools, build_shared_tools
from vault_mcp_server.ws_transport import WebSocketTransport

logger = logging.getLogger(__name__)


@dataclass
class StartResult:
    """Outcome of :meth:`DualServer.start`.

    Attributes:
        ws_port: Port of the WebSocket listener, if it started.
        http_port: Port of the HTTP listener, if it started.
        failures: Startup fault of each transport that failed.
    """

    ws_port: int | None = None
    http_port: int | None = None
    failures: dict[TransportKind, TransportStartError] = field(default_factory=dict)

    @property
    def started(self) -> bool:
        """Whether at least one transport is listening."""
        return self.ws_port is not None or self.http_port is not None

    @property
    def degraded(self) -> bool:
        """Whether an enabled transport failed to start."""
        return bool(self.failures)


class DualServer:
    """Own both transports, both tool registries and the discovery record."""

    def __init__(self, config: ServerConfig, host: HostServices) -> None:
        """Wire registries, router and transports; nothing is started yet."""
        self.config = config
        self.host = host

        self.ws_registry = ToolRegistry(label=TransportKind.WS.value)
        self.ws_registry.register_tools(
            *build_shared_tools(host), *build_integration_tools(host)
        )
        self.http_registry = ToolRegistry(label=TransportKind.HTTP.value)
        self.http_registry.register_tools(*build_shared_tools(host))

        self.ide_handler = IdeIntegrationHandler(push_context=self.publish_context)
        self.router = Router(
            {
                TransportKind.WS: self.ws_registry,
                TransportKind.HTTP: self.http_registry,
            },
            integration=self.ide_handler,
            legacy=LegacyMethods(host).table(),
            server_name=config.server_name,
            server_version=config.server_version,
        )

        self.publisher = DiscoveryPublisher(config.config_dir, config.ide_name)
        self.ws = WebSocketTransport(
            self.router, self.publisher, workspace_folders=self._workspace_folders
        )
        self.http = HttpTransport(
            self.router,
            config.heartbeat_interval,
            on_connection=self._session_opened,
            on_disconnection=self._session_closed,
            log_level="debug" if config.log_level == "DEBUG" else "warning",
        )

    def _workspace_folders(self) -> list[str]:
        return [self.host.workspace.base_path()]

    def _session_opened(self, session_id: str) -> None:
        logger.debug("HTTP clients: %d", self.http_client_count)

    def _session_closed(self, session_id: str) -> None:
        logger.debug("HTTP clients: %d", self.http_client_count)

    async def start(self) -> StartResult:
        """Start every enabled transport.

        A transport that fails to start is logged and recorded in
        :attr:`StartResult.failures`; it never prevents the other one from
        starting.
        """
        result = StartResult()
        if self.config.enable_websocket:
            try:
                result.ws_port = await self.ws.start()
            except TransportStartError as error:
                logger.warning("WebSocket transport failed to start: %s", error)
                result.failures[TransportKind.WS] = error
        if self.config.enable_http:
            try:
                result.http_port = await self.http.start(self.config.http_port)
            except TransportStartError as error:
                logger.warning("HTTP transport failed to start: %s", error)
                result.failures[TransportKind.HTTP] = error

        if not result.started:
            logger.error("No transport could be started")
        return result

    async def stop(self) -> None:
        """Stop both transports and remove the discovery record."""
        self.ide_handler.cancel_pending()
        for name, transport in (("WebSocket", self.ws), ("HTTP", self.http)):
            try:
                await transport.stop()
            except Exception:
                logger.exception("Error stopping %s transport", name)

    async def broadcast(self, notification: Notification) -> int:
        """Fan ``notification`` out to every client on both transports.

        Returns:
            How many clients it was handed to.

        """
        delivered = 0
        for transport in (self.ws, self.http):
            if not transport.is_running:
                continue
            try:
                delivered += await transport.broadcast(notification)
            except Exception:
                logger.exception("Broadcast of %s failed", notification.method)
        logger.debug("Broadcast %s to %d clients", notification.method, delivered)
        return delivered

    async def publish_context(self) -> int:
        """Broadcast the active document and selection as ``selection_changed``."""
        return await self.broadcast(current_file_context(self.host.workspace))

    def update_workspace_folders(self, base_path: str) -> None:
        """Point the discovery record at a new workspace root."""
        self.publisher.update_workspace_folders([base_path])

    @property
    def ws_client_count(self) -> int:
        """Connected WebSocket clients."""
        return self.ws.client_count

    @property
    def http_client_count(self) -> int:
        """Open SSE sessions."""
        return self.http.client_count

    @property
    def client_count(self) -> int:
        """Clients across both transports."""
        return self.ws_client_count + self.http_client_count

    def registry(self, kind: TransportKind) -> ToolRegistry:
        """Return the tool registry serving ``kind``."""
        return self.router.registry_for(kind)

    def server_info(self) -> dict[str, Any]:
        """Describe the state of both transports."""
        return {
            "name": self.config.server_name,
            "version": self.config.server_version,
            "websocket": {
                "enabled": self.config.enable_websocket,
                "running": self.ws.is_running,
                "port": self.ws.port,
                "clients": self.ws_client_count,
            },
            "http": {
                "enabled": self.config.enable_http,
                "running": self.http.is_running,
                "port": self.http.port,
                "clients": self.http_client_count,
            },
        }

    def tools_by_category(
        self, category: ToolCategory | str, kind: TransportKind = TransportKind.WS
    ) -> list[dict[str, Any]]:
        """List the tools of one category served on ``kind``."""
        return self.registry(kind).definitions(category)

    def tool_summary(self) -> dict[str, dict[str, Any]]:
        """Count the tools each transport serves, in total and per category."""
        summary: dict[str, dict[str, Any]] = {}
        for kind in TransportKind:
            registry = self.registry(kind)
            summary[kind.value] = {
                "total": len(registry.registered_names()),
                "categories": {
                    category.value: len(registry.definitions(category))
                    for category in ToolCategory
                },
            }
        return summary
