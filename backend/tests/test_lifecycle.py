"""
Task API — Lifecycle Coordinator Tests
=======================================

What:  Tests for the graceful shutdown state machine.
How:   Recording fakes stand in for the uvicorn listener and the database
       pool; the forced-exit function is a MagicMock so the timeout path
       can be observed without ending the test process.

What we test:
    ✅ At-most-once trigger (duplicate signals ignored)
    ✅ Storage close never starts before the listener has drained
    ✅ Clean path: exit code 0 and four ordered events
    ✅ Listener failure: storage untouched, non-zero exit
    ✅ Storage failure: non-zero exit
    ✅ Safety timeout: forced exit, one warning, sequence abandoned
    ✅ Real SIGTERM/SIGINT delivery through the event loop
"""

import asyncio
import os
import signal
import time
from unittest.mock import MagicMock

import pytest

from taskapi.exceptions import ListenerCloseError, StorageCloseError
from taskapi.lifecycle import (
    DEFAULT_SHUTDOWN_TIMEOUT,
    EXIT_FAILURE,
    EXIT_SUCCESS,
    LifecycleCoordinator,
    LifecycleState,
)

CLEAN_EVENTS = [
    "SIGTERM signal received: starting graceful shutdown",
    "HTTP server closed (no longer accepting connections)",
    "Database connection closed",
    "Graceful shutdown completed",
]


def make_coordinator(listener, storage, timeout=5.0):
    exit_func = MagicMock()
    coordinator = LifecycleCoordinator(
        listener=listener,
        storage=storage,
        timeout=timeout,
        exit_func=exit_func,
    )
    return coordinator, exit_func


class TestCleanShutdown:
    """Both handles close successfully."""

    @pytest.mark.asyncio
    async def test_exit_code_zero_and_ordered_events(self, make_listener, make_storage, lifecycle_events):
        listener = make_listener(delay=0.1)
        storage = make_storage(delay=0.1)
        coordinator, exit_func = make_coordinator(listener, storage)

        started = time.monotonic()
        coordinator.trigger(signal.SIGTERM)
        code = await asyncio.wait_for(coordinator.wait(), timeout=2)
        elapsed = time.monotonic() - started

        assert code == EXIT_SUCCESS
        assert coordinator.exit_code == EXIT_SUCCESS
        assert coordinator.state is LifecycleState.TERMINATED
        assert lifecycle_events() == CLEAN_EVENTS
        assert 0.2 <= elapsed < 1.0
        exit_func.assert_not_called()

    @pytest.mark.asyncio
    async def test_timer_disarmed_after_success(self, fake_listener, fake_storage):
        coordinator, exit_func = make_coordinator(fake_listener, fake_storage, timeout=0.1)

        coordinator.trigger(signal.SIGTERM)
        assert await coordinator.wait() == EXIT_SUCCESS

        await asyncio.sleep(0.2)
        exit_func.assert_not_called()
        assert coordinator.state is LifecycleState.TERMINATED

    @pytest.mark.asyncio
    async def test_sigint_handled_like_sigterm(self, fake_listener, fake_storage, lifecycle_events):
        coordinator, _ = make_coordinator(fake_listener, fake_storage)

        coordinator.trigger(signal.SIGINT)

        assert await coordinator.wait() == EXIT_SUCCESS
        assert coordinator.triggered_by == "SIGINT"
        assert lifecycle_events()[0] == "SIGINT signal received: starting graceful shutdown"
        assert len(lifecycle_events()) == 4

    @pytest.mark.asyncio
    async def test_wait_after_outcome_returns_immediately(self, fake_listener, fake_storage):
        coordinator, _ = make_coordinator(fake_listener, fake_storage)
        coordinator.trigger(signal.SIGTERM)
        await coordinator.wait()

        assert await asyncio.wait_for(coordinator.wait(), timeout=0.1) == EXIT_SUCCESS


class TestAtMostOnce:

    @pytest.mark.asyncio
    async def test_duplicate_trigger_logs_one_initiation(
        self, journal, make_listener, make_storage, lifecycle_events
    ):
        listener = make_listener(delay=0.05)
        coordinator, _ = make_coordinator(listener, make_storage())

        coordinator.trigger(signal.SIGTERM)
        coordinator.trigger(signal.SIGTERM)
        coordinator.trigger(signal.SIGINT)

        assert await coordinator.wait() == EXIT_SUCCESS
        initiated = [e for e in lifecycle_events() if "starting graceful shutdown" in e]
        assert initiated == ["SIGTERM signal received: starting graceful shutdown"]
        assert journal.count("listener:start") == 1
        assert journal.count("storage:start") == 1

    @pytest.mark.asyncio
    async def test_trigger_after_termination_is_ignored(self, fake_listener, fake_storage):
        coordinator, _ = make_coordinator(fake_listener, fake_storage)
        coordinator.trigger(signal.SIGTERM)
        await coordinator.wait()

        coordinator.trigger(signal.SIGTERM)
        await asyncio.sleep(0.01)

        assert coordinator.state is LifecycleState.TERMINATED
        assert coordinator.exit_code == EXIT_SUCCESS

    def test_trigger_is_the_only_way_out_of_running(self, fake_listener, fake_storage):
        coordinator, _ = make_coordinator(fake_listener, fake_storage)
        assert coordinator.state is LifecycleState.RUNNING
        assert coordinator.exit_code is None
        assert coordinator.triggered_by is None


class TestOrdering:

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "listener_delay,storage_delay",
        [(0.0, 0.0), (0.1, 0.0), (0.0, 0.1), (0.05, 0.05)],
    )
    async def test_storage_closes_only_after_listener_drained(
        self, journal, make_listener, make_storage, listener_delay, storage_delay
    ):
        listener = make_listener(delay=listener_delay)
        storage = make_storage(delay=storage_delay)
        coordinator, _ = make_coordinator(listener, storage)

        coordinator.trigger(signal.SIGTERM)
        await coordinator.wait()

        assert journal == ["listener:start", "listener:done", "storage:start", "storage:done"]

    @pytest.mark.asyncio
    async def test_storage_untouched_while_listener_blocked(self, journal, make_listener, make_storage):
        listener = make_listener()
        listener.release = asyncio.Event()
        coordinator, _ = make_coordinator(listener, make_storage())

        coordinator.trigger(signal.SIGTERM)
        await asyncio.sleep(0.1)

        assert coordinator.state is LifecycleState.DRAINING
        assert journal == ["listener:start"]

        listener.release.set()
        assert await coordinator.wait() == EXIT_SUCCESS
        assert journal.index("storage:start") > journal.index("listener:done")


class TestFailurePaths:

    @pytest.mark.asyncio
    async def test_listener_failure_skips_storage(
        self, journal, make_listener, make_storage, lifecycle_events
    ):
        listener = make_listener(error=ListenerCloseError("socket close failed"))
        coordinator, exit_func = make_coordinator(listener, make_storage())

        coordinator.trigger(signal.SIGTERM)
        code = await coordinator.wait()

        assert code == EXIT_FAILURE
        assert coordinator.state is LifecycleState.TERMINATED
        assert "storage:start" not in journal
        assert any(e.startswith("Error closing server") for e in lifecycle_events())
        assert "Graceful shutdown completed" not in lifecycle_events()
        exit_func.assert_not_called()

    @pytest.mark.asyncio
    async def test_storage_failure_exits_non_zero(
        self, journal, make_listener, make_storage, lifecycle_events
    ):
        storage = make_storage(error=StorageCloseError("pool dispose failed"))
        coordinator, _ = make_coordinator(make_listener(), storage)

        coordinator.trigger(signal.SIGTERM)
        code = await coordinator.wait()

        assert code == EXIT_FAILURE
        assert journal == ["listener:start", "listener:done", "storage:start"]
        events = lifecycle_events()
        assert "HTTP server closed (no longer accepting connections)" in events
        assert any(e.startswith("Error during shutdown") for e in events)
        assert "Database connection closed" not in events

    @pytest.mark.asyncio
    async def test_failures_are_not_retried(self, journal, make_listener, make_storage):
        storage = make_storage(error=RuntimeError("boom"))
        coordinator, _ = make_coordinator(make_listener(), storage)

        coordinator.trigger(signal.SIGTERM)
        await coordinator.wait()
        await asyncio.sleep(0.05)

        assert journal.count("storage:start") == 1


class TestSafetyTimeout:

    def test_default_timeout_is_thirty_seconds(self, fake_listener, fake_storage):
        coordinator = LifecycleCoordinator(fake_listener, fake_storage)
        assert DEFAULT_SHUTDOWN_TIMEOUT == 30.0
        assert coordinator.timeout == 30.0

    @pytest.mark.asyncio
    async def test_hanging_storage_forces_exit(
        self, make_listener, make_storage, lifecycle_events, caplog
    ):
        storage = make_storage()
        storage.release = asyncio.Event()
        coordinator, exit_func = make_coordinator(make_listener(), storage, timeout=0.2)

        started = time.monotonic()
        coordinator.trigger(signal.SIGTERM)
        code = await asyncio.wait_for(coordinator.wait(), timeout=2)
        elapsed = time.monotonic() - started

        assert code == EXIT_FAILURE
        assert coordinator.state is LifecycleState.TIMED_OUT
        exit_func.assert_called_once_with(EXIT_FAILURE)
        assert 0.2 <= elapsed < 0.6

        warnings = [
            r for r in caplog.records
            if r.name == "taskapi.lifecycle" and r.levelname == "WARNING"
        ]
        assert len(warnings) == 1
        assert "timed out" in warnings[0].getMessage()
        assert "closing_storage" in warnings[0].getMessage()
        assert "Graceful shutdown completed" not in lifecycle_events()

        storage.release.set()
        await asyncio.sleep(0.05)
        exit_func.assert_called_once()
        assert coordinator.state is LifecycleState.TIMED_OUT

    @pytest.mark.asyncio
    async def test_hanging_listener_never_reaches_storage(
        self, journal, make_listener, make_storage
    ):
        listener = make_listener()
        listener.release = asyncio.Event()
        coordinator, exit_func = make_coordinator(listener, make_storage(), timeout=0.1)

        coordinator.trigger(signal.SIGTERM)
        assert await coordinator.wait() == EXIT_FAILURE
        exit_func.assert_called_once_with(EXIT_FAILURE)

        # The abandoned drain finishing late must not start storage close
        listener.release.set()
        await asyncio.sleep(0.05)
        assert "storage:start" not in journal
        assert coordinator.state is LifecycleState.TIMED_OUT


class TestSignalInstallation:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("sig", [signal.SIGTERM, signal.SIGINT])
    async def test_os_signal_triggers_shutdown(self, fake_listener, fake_storage, sig):
        coordinator, _ = make_coordinator(fake_listener, fake_storage)
        coordinator.install()
        try:
            os.kill(os.getpid(), sig)
            code = await asyncio.wait_for(coordinator.wait(), timeout=2)
        finally:
            coordinator.uninstall()

        assert code == EXIT_SUCCESS
        assert coordinator.triggered_by == sig.name

    @pytest.mark.asyncio
    async def test_install_twice_raises(self, fake_listener, fake_storage):
        coordinator, _ = make_coordinator(fake_listener, fake_storage)
        coordinator.install()
        try:
            with pytest.raises(RuntimeError):
                coordinator.install()
        finally:
            coordinator.uninstall()

    @pytest.mark.asyncio
    async def test_uninstall_allows_reinstall(self, fake_listener, fake_storage):
        coordinator, _ = make_coordinator(fake_listener, fake_storage)
        coordinator.install()
        coordinator.uninstall()
        coordinator.install()
        coordinator.uninstall()
