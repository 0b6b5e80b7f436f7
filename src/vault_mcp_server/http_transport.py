"""Streaming-HTTP transport: an SSE stream per session plus POSTed envelopes.

``GET /sse`` (or ``GET /mcp``) opens a session and answers with an event
stream. The first event is ``endpoint``, whose data is the path the client
must POST its envelopes to. Replies to POSTed requests are delivered on the
stream as ``message`` events; the POST itself is answered with ``202``.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import json
import logging
import socket
import sys
from collections.abc import Callable, Iterator
from typing import Any

import uvicorn
from starlette.applications import Starlette
from starlette.datastructures import MutableHeaders
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from vault_mcp.errors import (
    ErrorCode,
    SessionError,
    TransportStartError,
    classify_bind_error,
)
from vault_mcp.protocol import (
    Notification,
    Outcome,
    encode_notification,
    encode_response,
    parse_envelope,
)
from vault_mcp.protocol import Message as Envelope
from vault_mcp.protocol import Request as RequestEnvelope
from vault_mcp.router import Router, TransportKind
from vault_mcp_server.config import DEFAULT_HEARTBEAT_INTERVAL
from vault_mcp_server.session_manager import Session, SessionManager

logger = logging.getLogger(__name__)

LOOPBACK = "127.0.0.1"
STARTUP_POLL_INTERVAL = 0.01

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Last-Event-ID, Mcp-Session-Id",
}

SessionCallback = Callable[[str], None]


def format_sse_event(event: str, data: str, event_id: int | None = None) -> str:
    """Encode one server-sent event frame."""
    lines = [] if event_id is None else [f"id: {event_id}"]
    lines.append(f"event: {event}")
    lines.extend(f"data: {line}" for line in data.split("\n"))
    return "\n".join(lines) + "\n\n"


class CORSHeadersMiddleware:
    """Answer ``OPTIONS`` directly and add permissive CORS headers.

    Written as plain ASGI so streamed responses pass through untouched.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return
        if scope["method"] == "OPTIONS":
            response = Response(status_code=200, headers=CORS_HEADERS)
            await response(scope, receive, send)
            return

        async def send_with_cors(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for name, value in CORS_HEADERS.items():
                    headers[name] = value
            await send(message)

        await self.app(scope, receive, send_with_cors)


class EventStreamResponse(Response):
    """Event stream bound to one session.

    The stream writes ``first_frame``, then every frame queued on the
    session, and a ``ping`` event whenever the queue stays idle for
    ``heartbeat_interval`` seconds. It ends when the client disconnects or a
    ``None`` is queued; ``on_close`` runs either way.
    """

    media_type = "text/event-stream"

    def __init__(
        self,
        session: Session,
        first_frame: str,
        heartbeat_interval: float,
        on_open: Callable[[], None],
        on_close: Callable[[], None],
    ) -> None:
        self.status_code = 200
        self.background = None
        self.init_headers({"Cache-Control": "no-cache", "X-Accel-Buffering": "no"})
        self._session = session
        self._first_frame = first_frame
        self._heartbeat_interval = heartbeat_interval
        self._on_open = on_open
        self._on_close = on_close

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await send(
                {
                    "type": "http.response.start",
                    "status": self.status_code,
                    "headers": self.raw_headers,
                }
            )
            await self._write(send, self._first_frame)
            self._on_open()

            pump = asyncio.create_task(self._pump(send))
            watcher = asyncio.create_task(self._watch_disconnect(receive))
            done, pending = await asyncio.wait(
                {pump, watcher}, return_when=asyncio.FIRST_COMPLETED
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

            if pump in done:
                error = pump.exception()
                if error is not None:
                    logger.error(
                        "Event stream %s failed", self._session.id, exc_info=error
                    )
                elif pump.result():
                    await send(
                        {"type": "http.response.body", "body": b"", "more_body": False}
                    )
        except OSError as error:
            logger.debug("Event stream %s write failed: %s", self._session.id, error)
        finally:
            self._on_close()

    @staticmethod
    async def _write(send: Send, frame: str) -> None:
        await send(
            {
                "type": "http.response.body",
                "body": frame.encode("utf-8"),
                "more_body": True,
            }
        )

    async def _pump(self, send: Send) -> bool:
        """Write queued frames; return ``True`` when asked to finish."""
        while True:
            try:
                frame = await asyncio.wait_for(
                    self._session.queue.get(), self._heartbeat_interval
                )
            except asyncio.TimeoutError:
                frame = format_sse_event("ping", "")
            if frame is None:
                return True
            try:
                await self._write(send, frame)
            except OSError as error:
                logger.debug("Event stream %s closed: %s", self._session.id, error)
                return False

    @staticmethod
    async def _watch_disconnect(receive: Receive) -> None:
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                return


class _EmbeddedServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to the host process."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


def _bind_socket(port: int) -> socket.socket:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        if sys.platform != "win32":
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((LOOPBACK, port))
    except OSError:
        sock.close()
        raise
    return sock


class HttpTransport:
    """Serve the streaming-HTTP transport with Starlette and uvicorn."""

    def __init__(
        self,
        router: Router,
        heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL,
        *,
        on_connection: SessionCallback | None = None,
        on_disconnection: SessionCallback | None = None,
        log_level: str = "warning",
    ) -> None:
        """Create the transport.

        Args:
            router: Router that answers decoded envelopes.
            heartbeat_interval: Seconds between ``ping`` events on idle streams.
            on_connection: Called with the session id once a stream opens.
            on_disconnection: Called with the session id once a stream closes.
            log_level: Level for uvicorn's own loggers.

        """
        self._router = router
        self._heartbeat_interval = heartbeat_interval
        self._on_connection = on_connection
        self._on_disconnection = on_disconnection
        self._log_level = log_level.lower()
        self.sessions = SessionManager()
        self._event_ids = itertools.count(1)
        self._tasks: set[asyncio.Task[None]] = set()
        self._server: _EmbeddedServer | None = None
        self._serve_task: asyncio.Task[None] | None = None
        self.port: int | None = None
        self.app = self._build_app()

    @property
    def client_count(self) -> int:
        """Number of open event streams."""
        return len(self.sessions.open_sessions())

    @property
    def is_running(self) -> bool:
        """Whether uvicorn is serving."""
        return self._server is not None

    def _build_app(self) -> Starlette:
        routes = []
        for path in ("/sse", "/sse/"):
            routes.append(Route(path, self._open_stream, methods=["GET"]))
        for path in ("/messages", "/messages/"):
            routes.append(Route(path, self._submit, methods=["POST"]))
        for path in ("/mcp", "/mcp/"):
            routes.append(Route(path, self._open_stream, methods=["GET"]))
            routes.append(Route(path, self._submit, methods=["POST"]))
        app = Starlette(routes=routes)
        app.add_middleware(CORSHeadersMiddleware)
        return app

    async def start(self, port: int) -> int:
        """Bind ``127.0.0.1:port`` and start serving.

        Returns:
            The bound port, useful when ``port`` is ``0``.

        Raises:
            TransportStartError: If the port cannot be bound or uvicorn fails
                to start.

        """
        try:
            sock = _bind_socket(port)
        except OSError as error:
            raise classify_bind_error(error, TransportKind.HTTP.value, port) from error
        bound_port = sock.getsockname()[1]

        config = uvicorn.Config(
            self.app,
            log_level=self._log_level,
            log_config=None,
            access_log=False,
            lifespan="off",
            timeout_graceful_shutdown=5,
        )
        server = _EmbeddedServer(config)
        serve_task = asyncio.create_task(server.serve(sockets=[sock]))
        while not server.started:
            if serve_task.done():
                sock.close()
                error = None if serve_task.cancelled() else serve_task.exception()
                raise TransportStartError(
                    TransportKind.HTTP.value,
                    bound_port,
                    f"Failed to start HTTP transport: {error or 'server exited'}",
                )
            await asyncio.sleep(STARTUP_POLL_INTERVAL)

        self._server = server
        self._serve_task = serve_task
        self.port = bound_port
        logger.info("HTTP transport listening on http://%s:%d", LOOPBACK, bound_port)
        return bound_port

    async def stop(self) -> None:
        """End every open stream, then shut uvicorn down."""
        server, self._server = self._server, None
        serve_task, self._serve_task = self._serve_task, None
        for session in self.sessions.all_sessions():
            session.end()
        if server is not None and serve_task is not None:
            server.should_exit = True
            await serve_task
            logger.info("HTTP transport stopped")
        self.port = None

    async def broadcast(self, notification: Notification) -> int:
        """Queue ``notification`` on every open session.

        Returns:
            The number of sessions the event was queued on.

        """
        payload = encode_notification(notification)
        delivered = 0
        for session in self.sessions.open_sessions():
            if session.deliver(self._event("message", payload)):
                delivered += 1
        return delivered

    def _event(self, event: str, data: str) -> str:
        return format_sse_event(event, data, next(self._event_ids))

    async def _open_stream(self, request: Request) -> Response:
        session = self.sessions.create_session()
        post_path = "/mcp" if request.url.path.startswith("/mcp") else "/messages"
        endpoint = f"{post_path}?session_id={session.id}"

        def on_open() -> None:
            self.sessions.open(session.id)
            logger.info("SSE session %s opened", session.id)
            if self._on_connection is not None:
                self._on_connection(session.id)

        def on_close() -> None:
            if self.sessions.close(session.id) is None:
                return
            logger.info("SSE session %s closed", session.id)
            if self._on_disconnection is not None:
                self._on_disconnection(session.id)

        return EventStreamResponse(
            session,
            format_sse_event("endpoint", endpoint),
            self._heartbeat_interval,
            on_open=on_open,
            on_close=on_close,
        )

    async def _submit(self, request: Request) -> Response:
        session_id = request.query_params.get("session_id")
        if not session_id:
            return JSONResponse({"error": "Missing session_id"}, status_code=400)
        try:
            session = self.sessions.get(session_id)
        except SessionError as error:
            return JSONResponse({"error": str(error)}, status_code=error.status_code)

        try:
            data = json.loads(await request.body())
        except ValueError:
            return _jsonrpc_error(ErrorCode.PARSE_ERROR, "Parse error")

        if isinstance(data, dict):
            items: list[Any] = [data]
        elif isinstance(data, list) and data:
            items = data
        else:
            return _jsonrpc_error(ErrorCode.INVALID_REQUEST, "Invalid Request")

        messages = [m for m in map(parse_envelope, items) if m is not None]
        if not messages:
            return _jsonrpc_error(ErrorCode.INVALID_REQUEST, "Invalid Request")
        if len(messages) < len(items):
            logger.debug("Dropped %d invalid envelopes", len(items) - len(messages))

        if not session.is_open and any(
            isinstance(m, RequestEnvelope) for m in messages
        ):
            return JSONResponse(
                {"error": f"Session '{session_id}' is not open"}, status_code=410
            )

        for message in messages:
            task = asyncio.create_task(self._dispatch(session, message))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return Response(status_code=202)

    async def _dispatch(self, session: Session, message: Envelope) -> None:
        request_id = message.id if isinstance(message, RequestEnvelope) else None

        async def reply(outcome: Outcome) -> None:
            if not session.deliver(
                self._event("message", encode_response(request_id, outcome))
            ):
                logger.debug("Reply to %s dropped, session closed", message.method)

        await self._router.dispatch(message, reply, TransportKind.HTTP)


def _jsonrpc_error(code: ErrorCode, message: str) -> JSONResponse:
    payload = {"code": int(code), "message": message}
    return JSONResponse(
        {"jsonrpc": "2.0", "id": None, "error": payload}, status_code=400
    )
