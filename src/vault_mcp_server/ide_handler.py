"""Handler for editor-integration messages consulted before normal routing."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from vault_mcp.protocol import Message, Reply
from vault_mcp.router import TransportKind

logger = logging.getLogger(__name__)

IDE_CONNECTED = "ide_connected"
INITIALIZED = "notifications/initialized"
INITIAL_CONTEXT_DELAY = 0.2


class IdeIntegrationHandler:
    """Consume ``ide_connected`` and ``notifications/initialized``.

    Neither message is answered. When a WebSocket client reports it is
    initialized, the current editor context is pushed to all clients after a
    short delay.
    """

    def __init__(
        self,
        push_context: Callable[[], Awaitable[None]] | None = None,
        delay: float = INITIAL_CONTEXT_DELAY,
    ) -> None:
        self._push_context = push_context
        self._delay = delay
        self._pending: set[asyncio.Task[None]] = set()

    async def handle(
        self, message: Message, reply: Reply, source: TransportKind
    ) -> bool:
        """Return ``True`` if ``message`` was an integration message."""
        if message.method == IDE_CONNECTED:
            params = message.params if isinstance(message.params, dict) else {}
            logger.info("Agent client connected with pid %s", params.get("pid"))
            return True
        if message.method == INITIALIZED:
            if source is TransportKind.WS and self._push_context is not None:
                task = asyncio.create_task(self._push_later(self._push_context))
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)
            return True
        return False

    async def _push_later(self, push: Callable[[], Awaitable[None]]) -> None:
        await asyncio.sleep(self._delay)
        logger.debug("Sending initial file context")
        try:
            await push()
        except Exception:
            logger.exception("Failed to push initial file context")

    def cancel_pending(self) -> None:
        """Cancel context pushes that have not fired yet."""
        for task in list(self._pending):
            task.cancel()
        self._pending.clear()
