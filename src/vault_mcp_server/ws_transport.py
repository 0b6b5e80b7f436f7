"""Loopback WebSocket transport; each connection is one agent session."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from vault_mcp.errors import TransportStartError, classify_bind_error
from vault_mcp.protocol import (
    Message,
    Notification,
    Outcome,
    Request,
    decode_frame,
    encode_notification,
    encode_response,
)
from vault_mcp.router import Router, TransportKind
from vault_mcp_server.discovery import DiscoveryPublisher

logger = logging.getLogger(__name__)

LOOPBACK = "127.0.0.1"


class WebSocketTransport:
    """Serve JSON-RPC over WebSocket on an OS-assigned loopback port.

    The port is advertised through the discovery record, written right after
    the listener binds and removed when it stops.
    """

    def __init__(
        self,
        router: Router,
        publisher: DiscoveryPublisher,
        workspace_folders: Callable[[], list[str]] | None = None,
    ) -> None:
        """Create the transport.

        Args:
            router: Router that answers decoded envelopes.
            publisher: Writes the discovery record for the bound port.
            workspace_folders: Returns the folders listed in the record.

        """
        self._router = router
        self._publisher = publisher
        self._workspace_folders = workspace_folders or list
        self._server: Server | None = None
        self._clients: set[ServerConnection] = set()
        self._tasks: set[asyncio.Task[None]] = set()
        self.port: int | None = None

    @property
    def client_count(self) -> int:
        """Number of connected WebSocket clients."""
        return len(self._clients)

    @property
    def is_running(self) -> bool:
        """Whether the listener is up."""
        return self._server is not None

    async def start(self) -> int:
        """Bind the listener and publish the discovery record.

        Returns:
            The bound port.

        Raises:
            TransportStartError: If binding or writing the record fails. The
                listener is closed again when the record cannot be written.

        """
        try:
            server = await serve(self._handle_connection, LOOPBACK, 0)
        except OSError as error:
            raise classify_bind_error(error, TransportKind.WS.value, 0) from error

        port = next(iter(server.sockets)).getsockname()[1]
        try:
            self._publisher.publish(port, self._workspace_folders())
        except OSError as error:
            server.close()
            await server.wait_closed()
            raise TransportStartError(
                TransportKind.WS.value,
                port,
                f"Failed to write discovery record: {error}",
            ) from error

        self._server = server
        self.port = port
        logger.info("WebSocket transport listening on ws://%s:%d", LOOPBACK, port)
        return port

    async def stop(self) -> None:
        """Close every connection, stop listening and remove the record."""
        server, self._server = self._server, None
        if server is not None:
            server.close()
            await server.wait_closed()
            logger.info("WebSocket transport stopped")
        self._clients.clear()
        self._publisher.remove()
        self.port = None

    async def broadcast(self, notification: Notification) -> int:
        """Send ``notification`` to every connected client.

        Returns:
            The number of clients the frame was written to.

        """
        payload = encode_notification(notification)
        delivered = 0
        for connection in list(self._clients):
            try:
                await connection.send(payload)
            except ConnectionClosed:
                self._clients.discard(connection)
            else:
                delivered += 1
        return delivered

    async def _handle_connection(self, connection: ServerConnection) -> None:
        self._clients.add(connection)
        logger.info(
            "WebSocket client connected from %s (%d open)",
            connection.remote_address,
            len(self._clients),
        )
        try:
            async for raw in connection:
                message = decode_frame(raw)
                if message is None:
                    logger.debug("Dropping malformed WebSocket frame")
                    continue
                task = asyncio.create_task(self._dispatch(connection, message))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
        except ConnectionClosed:
            pass
        finally:
            self._clients.discard(connection)
            logger.info("WebSocket client disconnected (%d open)", len(self._clients))

    async def _dispatch(self, connection: ServerConnection, message: Message) -> None:
        request_id = message.id if isinstance(message, Request) else None

        async def reply(outcome: Outcome) -> None:
            try:
                await connection.send(encode_response(request_id, outcome))
            except ConnectionClosed:
                logger.debug("Reply to %s dropped, connection closed", message.method)

        await self._router.dispatch(message, reply, TransportKind.WS)
