"""Process runner: allocate a port, serve on it, publish it, shut down cleanly."""

import argparse
import asyncio
import logging
import socket
import sys

import uvicorn
from fastapi import FastAPI

from .config import Settings, load_settings
from .errors import PortBindError
from .main import configure_logging, create_app
from .port_allocator import allocate
from .port_registry import publish_port
from .router_chat import CHAT_PATHS
from .router_status import STATUS_PATHS

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_STARTUP_FAILURE = 2

_STARTUP_POLL_SECONDS = 0.05


def build_server(app: FastAPI, sock: socket.socket, settings: Settings) -> uvicorn.Server:
    host, port = sock.getsockname()[:2]
    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        access_log=False,
        log_level=settings.log_level.lower(),
        timeout_graceful_shutdown=settings.shutdown_timeout_seconds,
    )
    return uvicorn.Server(config)


async def serve(server: uvicorn.Server, sock: socket.socket, registry_path: str) -> bool:
    """Serve on the already-bound ``sock``; publish the port once accepting.

    Returns False if the server never finished starting.
    """
    port = sock.getsockname()[1]
    task = asyncio.create_task(server.serve(sockets=[sock]))
    while not server.started and not task.done():
        await asyncio.sleep(_STARTUP_POLL_SECONDS)

    if server.started:
        publish_port(registry_path, port)
        logger.info("Spark proxy listening on http://localhost:%d", port)
        logger.info("Chat endpoint:   http://localhost:%d%s", port, CHAT_PATHS[0])
        logger.info("Status endpoint: http://localhost:%d%s", port, STATUS_PATHS[0])

    await task
    return server.started


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="spark-proxy",
        description="Local proxy in front of the Spark chat-completion API",
    )
    parser.add_argument("--config", help="YAML settings file (overrides environment)")
    parser.add_argument("--host", help="Interface to bind")
    parser.add_argument("--port", type=int, help="First port to try")
    return parser.parse_args(argv)


def run(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        settings = load_settings(args.config)
    except (OSError, ValueError) as e:
        configure_logging("INFO")
        logger.error("Failed to load configuration: %s", e)
        return EXIT_STARTUP_FAILURE

    overrides = {}
    if args.host:
        overrides["host"] = args.host
    if args.port is not None:
        overrides["base_port"] = args.port
    if overrides:
        settings = settings.model_copy(update=overrides)
    configure_logging(settings.log_level)

    try:
        sock = allocate(settings.base_port, settings.host, max_port=settings.max_port)
    except PortBindError as e:
        logger.error("Failed to start server: %s", e)
        return EXIT_STARTUP_FAILURE

    app = create_app(settings)
    server = build_server(app, sock, settings)
    try:
        started = asyncio.run(serve(server, sock, settings.port_registry_path))
    except KeyboardInterrupt:
        started = True
    finally:
        sock.close()

    if not started:
        logger.error("Server failed to start")
        return EXIT_STARTUP_FAILURE
    logger.info("Server shut down")
    return EXIT_OK


def main() -> None:
    sys.exit(run())
