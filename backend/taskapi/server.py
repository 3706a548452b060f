"""
Task API — Process Entry Point
===============================

What:  Runs the FastAPI app under uvicorn and hands shutdown to the
       LifecycleCoordinator.
Why:   uvicorn's own signal handling would dispose nothing and exit on its own
       schedule; here SIGTERM/SIGINT drain the listener first, then close the
       database pool, under a safety timeout.
How:   1. Build a uvicorn server whose signal capture is disabled
       2. Start `server.serve()` as a task (the listener handle)
       3. Install the coordinator's signal handlers
       4. Wait for the coordinator's exit code and return it

Usage:
    python -m taskapi          # or the `taskapi` console script
"""

import asyncio
import contextlib
import logging
import socket
import sys
from typing import Iterator, List, Optional

import uvicorn
from fastapi import FastAPI

from taskapi.config import settings
from taskapi.database import DatabaseConnection
from taskapi.exceptions import ListenerCloseError, ServerStartError
from taskapi.lifecycle import EXIT_FAILURE, LifecycleCoordinator, LifecycleState
from taskapi.main import app as default_app, setup_logging

logger = logging.getLogger(__name__)


class ListenerServer(uvicorn.Server):
    """uvicorn server that leaves SIGTERM/SIGINT to the lifecycle coordinator."""

    async def serve(self, sockets: Optional[List[socket.socket]] = None) -> None:
        # uvicorn calls sys.exit() when it cannot start (e.g. the port is
        # taken); SystemExit would escape the serve task and the event loop
        try:
            await super().serve(sockets=sockets)
        except SystemExit as e:
            raise ServerStartError(
                message=f"HTTP server exited during startup (status {e.code})",
                context={"exit_status": e.code},
            ) from None

    async def startup(self, sockets: Optional[List[socket.socket]] = None) -> None:
        await super().startup(sockets=sockets)
        if self.started:
            port = self.bound_port or self.config.port
            logger.info("Server is running on port %d", port)
            logger.info("Access the API at: http://localhost:%d", port)

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield

    def install_signal_handlers(self) -> None:
        # Older uvicorn releases call this instead of capture_signals()
        pass

    @property
    def bound_port(self) -> Optional[int]:
        """Port actually bound (useful when configured with port 0)."""
        for server in getattr(self, "servers", None) or []:
            for sock in server.sockets:
                return sock.getsockname()[1]
        return None


class UvicornListener:
    """
    Listener handle over a running uvicorn server.

    `stop_accepting()` asks uvicorn to exit and waits for its serve task.
    uvicorn then closes the listening sockets, lets in-flight responses
    finish, closes the connections, and runs the app's lifespan shutdown.
    """

    def __init__(self, server: uvicorn.Server, serve_task: "asyncio.Task[None]"):
        self._server = server
        self._serve_task = serve_task

    async def stop_accepting(self) -> None:
        self._server.should_exit = True
        try:
            await self._serve_task
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise ListenerCloseError(
                message=f"HTTP server failed to close: {e}",
                context={"error_type": type(e).__name__},
            ) from e


def build_server(app: FastAPI, host: str, port: int) -> ListenerServer:
    config = uvicorn.Config(
        app=app,
        host=host,
        port=port,
        loop="asyncio",
        log_config=None,    # keep the configuration from setup_logging()
        access_log=False,   # RequestLoggingMiddleware writes the access log
        server_header=False,
    )
    return ListenerServer(config)


async def serve(
    app: Optional[FastAPI] = None,
    host: Optional[str] = None,
    port: Optional[int] = None,
    shutdown_timeout: Optional[float] = None,
) -> int:
    """
    Serve until a termination signal has been handled; return the exit code.

    Returns 0 after a clean shutdown and 1 after a failed one. A timed-out
    shutdown never returns: the coordinator forces the process to exit.
    """
    setup_logging()

    server = build_server(
        app or default_app,
        host or settings.host,
        settings.port if port is None else port,
    )
    serve_task = asyncio.create_task(server.serve(), name="uvicorn-serve")
    storage = DatabaseConnection()
    coordinator = LifecycleCoordinator(
        listener=UvicornListener(server, serve_task),
        storage=storage,
        timeout=shutdown_timeout or settings.shutdown_timeout,
    )
    coordinator.install()

    waiter = asyncio.ensure_future(coordinator.wait())
    try:
        done, _ = await asyncio.wait(
            {serve_task, waiter}, return_when=asyncio.FIRST_COMPLETED
        )
        if waiter in done or coordinator.state is not LifecycleState.RUNNING:
            return await waiter

        # uvicorn stopped with no termination request
        waiter.cancel()
        if not serve_task.cancelled() and serve_task.exception() is not None:
            logger.error("HTTP server stopped unexpectedly: %s", serve_task.exception())
        else:
            logger.error("HTTP server stopped unexpectedly")
        try:
            await storage.close_connections()
        except Exception as e:
            logger.error("Error closing database connection: %s", e)
        return EXIT_FAILURE
    finally:
        coordinator.uninstall()


def main() -> None:
    """Console entry point."""
    sys.exit(asyncio.run(serve()))
