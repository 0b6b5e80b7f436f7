"""Command-line entry point for the dual-transport vault MCP server."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path

from pydantic import ValidationError

from vault_mcp_server.config import ServerConfig
from vault_mcp_server.dual_server import DualServer
from vault_mcp_server.local_host import LocalFolderHost

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    """Install the root log handler once."""
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser."""
    parser = argparse.ArgumentParser(description="Vault MCP server")
    parser.add_argument(
        "--root", type=Path, default=None, help="Workspace folder (default: cwd)"
    )
    parser.add_argument("--http-port", type=int, default=None, help="HTTP/SSE port")
    parser.add_argument(
        "--no-websocket", action="store_true", help="Disable the WebSocket transport"
    )
    parser.add_argument(
        "--no-http", action="store_true", help="Disable the HTTP/SSE transport"
    )
    parser.add_argument("--ide-name", default=None, help="Name in the discovery record")
    parser.add_argument("--log-level", default=None, help="Logging level")
    parser.add_argument("--catalog", action="store_true", help="Print the tool catalog")
    return parser


async def run_server(
    server: DualServer, stop_event: asyncio.Event | None = None
) -> int:
    """Run ``server`` until ``stop_event`` is set or SIGINT/SIGTERM arrives.

    Returns:
        The process exit code: ``1`` if no transport started.

    """
    result = await server.start()
    if result.ws_port is not None:
        print(f"WebSocket transport on ws://127.0.0.1:{result.ws_port}")
    if result.http_port is not None:
        print(f"HTTP transport on http://127.0.0.1:{result.http_port}/sse")
    for kind, error in result.failures.items():
        print(f"{kind.value} transport unavailable: {error}", file=sys.stderr)
    if not result.started:
        await server.stop()
        return 1

    stop = stop_event or asyncio.Event()
    loop = asyncio.get_running_loop()
    installed = []
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, stop.set)
        except (NotImplementedError, RuntimeError):
            # Not supported on this event loop; Ctrl+C still interrupts.
            continue
        installed.append(signum)
    try:
        await stop.wait()
    finally:
        for signum in installed:
            loop.remove_signal_handler(signum)
        await server.stop()
    return 0


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, then print the catalog or run the server."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = ServerConfig.from_env(
            http_port=args.http_port,
            enable_websocket=False if args.no_websocket else None,
            enable_http=False if args.no_http else None,
            ide_name=args.ide_name,
            log_level=args.log_level,
        )
    except ValidationError as error:
        parser.error(str(error))
    configure_logging(config.log_level)

    try:
        host = LocalFolderHost(args.root or Path.cwd())
    except NotADirectoryError as error:
        parser.error(str(error))
    server = DualServer(config, host.services())

    if args.catalog:
        catalog = {
            "ws": server.ws_registry.to_catalog(),
            "http": server.http_registry.to_catalog(),
        }
        print(json.dumps(catalog, indent=2))
        return 0

    logger.info("Serving workspace %s", host.base_path())
    return asyncio.run(run_server(server))


if __name__ == "__main__":
    sys.exit(main())
