"""
Task API — Lifecycle Coordinator
=================================

What:  Owns the process transition from "serving" to "terminated" after
       SIGTERM or SIGINT.
Why:   The listener and the database pool must be torn down in order, and a
       hung dependency must not keep the container alive forever.
How:   One coordinator object per process. The loop's signal handlers call
       `trigger()`, which schedules the drain-and-close sequence and races it
       against a safety timer.
Who:   Created and installed by `taskapi.server.serve()`.

State Machine:

    running ──trigger──▶ draining ──listener drained──▶ closing_storage ──closed──▶ terminated
                            │                                 │
                            └──────────── timer ──────────────┴──────────▶ timed_out

    - `trigger()` is honoured once; later signals are ignored
    - storage close never starts before the listener reports drained
    - a listener or storage failure ends in `terminated` with exit code 1,
      without retries
    - `timed_out` forces process exit with code 1 through `exit_func`; the
      sequence is abandoned, not cancelled

Log events (logger "taskapi.lifecycle"), in order on the clean path:
    1. "SIGTERM signal received: starting graceful shutdown"
    2. "HTTP server closed (no longer accepting connections)"
    3. "Database connection closed"
    4. "Graceful shutdown completed"
"""

import asyncio
import enum
import logging
import os
import signal
from typing import Callable, Optional, Protocol, Tuple, Union

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1

DEFAULT_SHUTDOWN_TIMEOUT = 30.0

HANDLED_SIGNALS: Tuple[signal.Signals, ...] = (signal.SIGTERM, signal.SIGINT)


class LifecycleState(str, enum.Enum):
    RUNNING = "running"
    DRAINING = "draining"
    CLOSING_STORAGE = "closing_storage"
    TERMINATED = "terminated"
    TIMED_OUT = "timed_out"


class Listener(Protocol):
    """Network listener handle."""

    async def stop_accepting(self) -> None:
        """Stop accepting connections, let in-flight requests finish, close the socket."""
        ...


class Storage(Protocol):
    """Storage-connection handle."""

    async def close_connections(self) -> None:
        """Close and release every connection to the database."""
        ...


def force_exit(code: int) -> None:
    """Flush log handlers, then end the process immediately with `code`."""
    logging.shutdown()
    os._exit(code)


def _signal_name(sig: Union[signal.Signals, int, str]) -> str:
    if isinstance(sig, str):
        return sig
    try:
        return signal.Signals(sig).name
    except ValueError:
        return str(sig)


class LifecycleCoordinator:
    """
    Graceful shutdown coordinator for one listener and one storage handle.

    Args:
        listener:  handle with `async stop_accepting()`
        storage:   handle with `async close_connections()`
        timeout:   safety timeout in seconds, armed when draining begins
        exit_func: called with the exit code when the safety timeout fires

    Clean and failed shutdowns are reported through `wait()`, whose caller
    turns the code into the process exit status. Only the timeout path calls
    `exit_func` itself, since the sequence may never return.
    """

    def __init__(
        self,
        listener: Listener,
        storage: Storage,
        timeout: float = DEFAULT_SHUTDOWN_TIMEOUT,
        exit_func: Callable[[int], None] = force_exit,
    ):
        self._listener = listener
        self._storage = storage
        self.timeout = timeout
        self._exit_func = exit_func

        self._state = LifecycleState.RUNNING
        self._exit_code: Optional[int] = None
        self._triggered_by: Optional[str] = None

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._installed: Tuple[signal.Signals, ...] = ()
        self._shutdown_task: Optional[asyncio.Task] = None
        self._outcome: Optional[asyncio.Future] = None

    # ── Introspection ─────────────────────────────────────────────────────

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def exit_code(self) -> Optional[int]:
        """None until a terminal outcome has been recorded."""
        return self._exit_code

    @property
    def triggered_by(self) -> Optional[str]:
        """Name of the signal that started the shutdown, if any."""
        return self._triggered_by

    # ── Signal wiring ─────────────────────────────────────────────────────

    def install(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """
        Route SIGTERM and SIGINT to `trigger()`.

        Must be called from the thread running `loop` (the main thread).

        Raises:
            RuntimeError: handlers are already installed for this coordinator.
        """
        if self._installed:
            raise RuntimeError("Signal handlers are already installed")

        loop = loop or asyncio.get_running_loop()
        self._loop = loop
        for sig in HANDLED_SIGNALS:
            try:
                loop.add_signal_handler(sig, self.trigger, sig)
            except NotImplementedError:
                # Event loops without add_signal_handler (Windows)
                signal.signal(
                    sig,
                    lambda signum, frame: loop.call_soon_threadsafe(self.trigger, signum),
                )
        self._installed = HANDLED_SIGNALS
        logger.debug("Shutdown handlers installed for %s", ", ".join(s.name for s in HANDLED_SIGNALS))

    def uninstall(self) -> None:
        """Restore default handling for the signals installed by `install()`."""
        for sig in self._installed:
            try:
                self._loop.remove_signal_handler(sig)
            except NotImplementedError:
                signal.signal(sig, signal.SIG_DFL)
        self._installed = ()

    # ── Shutdown ──────────────────────────────────────────────────────────

    def trigger(self, sig: Union[signal.Signals, int, str] = signal.SIGTERM) -> None:
        """
        Begin graceful shutdown. Honoured once; later calls are ignored.

        Non-blocking: schedules the sequence on the running loop and returns.
        """
        name = _signal_name(sig)
        if self._state is not LifecycleState.RUNNING:
            logger.debug("%s received while %s, ignoring", name, self._state.value)
            return

        self._triggered_by = name
        self._transition(LifecycleState.DRAINING)
        logger.info("%s signal received: starting graceful shutdown", name)

        loop = self._loop or asyncio.get_running_loop()
        self._shutdown_task = loop.create_task(self._shutdown(), name="graceful-shutdown")

    async def wait(self) -> int:
        """Wait for the terminal outcome and return the exit code."""
        if self._exit_code is not None:
            return self._exit_code
        if self._outcome is None:
            self._outcome = asyncio.get_running_loop().create_future()
        return await self._outcome

    async def _shutdown(self) -> None:
        sequence = asyncio.ensure_future(self._drain_and_close())
        done, _ = await asyncio.wait({sequence}, timeout=self.timeout)

        if sequence not in done:
            stage = self._state.value
            self._transition(LifecycleState.TIMED_OUT)
            logger.warning(
                "Graceful shutdown timed out after %gs (stuck in %s), forcing exit",
                self.timeout,
                stage,
            )
            self._finish(EXIT_FAILURE)
            self._exit_func(EXIT_FAILURE)
            return

        code = sequence.result()
        self._transition(LifecycleState.TERMINATED)
        if code == EXIT_SUCCESS:
            logger.info("Graceful shutdown completed")
        self._finish(code)

    async def _drain_and_close(self) -> int:
        try:
            await self._listener.stop_accepting()
        except Exception as e:
            logger.error("Error closing server: %s", e, exc_info=True)
            return EXIT_FAILURE

        if self._state is not LifecycleState.DRAINING:
            # Abandoned by the safety timer while draining
            return EXIT_FAILURE

        logger.info("HTTP server closed (no longer accepting connections)")
        self._transition(LifecycleState.CLOSING_STORAGE)

        try:
            await self._storage.close_connections()
        except Exception as e:
            logger.error("Error during shutdown: %s", e, exc_info=True)
            return EXIT_FAILURE

        if self._state is not LifecycleState.CLOSING_STORAGE:
            return EXIT_FAILURE

        logger.info("Database connection closed")
        return EXIT_SUCCESS

    def _transition(self, new_state: LifecycleState) -> None:
        logger.debug("Lifecycle: %s -> %s", self._state.value, new_state.value)
        self._state = new_state

    def _finish(self, code: int) -> None:
        if self._exit_code is not None:
            return
        self._exit_code = code
        if self._outcome is not None and not self._outcome.done():
            self._outcome.set_result(code)
