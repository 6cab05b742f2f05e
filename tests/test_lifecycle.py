"""
Tests for the start / interrupt / drain state machine.
"""

import asyncio
import os
import signal
import sys
import time

import pytest

from web_setup.errors import BindError, ShutdownError
from web_setup.lifecycle import Lifecycle, LifecycleState

from fakes import FakeListener

S = LifecycleState


def run_with_interrupt(lifecycle, after=0.05):
    async def scenario():
        asyncio.get_running_loop().call_later(after, lifecycle.request_shutdown)
        await lifecycle.run()

    asyncio.run(scenario())


def test_happy_path_transitions(deps):
    """An interrupt walks the full INIT to STOPPED path."""
    listener = FakeListener()
    lifecycle = Lifecycle(listener, deps, shutdown_timeout=0.5, signals=())

    run_with_interrupt(lifecycle)

    assert lifecycle.history == [S.INIT, S.STARTING, S.RUNNING, S.STOPPING, S.STOPPED]
    assert lifecycle.state is S.STOPPED
    assert listener.calls == ["start", ("shutdown", 0.5)]


def test_default_deadline_is_ten_seconds(deps):
    """The drain deadline defaults to ten seconds."""
    assert Lifecycle(FakeListener(), deps).shutdown_timeout == 10.0


def test_running_only_after_listener_is_ready(deps):
    """The lifecycle stays in STARTING until the listener accepts connections."""
    listener = FakeListener(start_delay=0.2)
    lifecycle = Lifecycle(listener, deps, shutdown_timeout=1.0, signals=())

    async def scenario():
        running = asyncio.create_task(lifecycle.run())
        await asyncio.sleep(0.05)
        assert lifecycle.history == [S.INIT, S.STARTING]

        await asyncio.wait_for(listener.ready.wait(), timeout=2.0)
        await asyncio.sleep(0.05)
        assert lifecycle.state is S.RUNNING

        lifecycle.request_shutdown()
        await running

    asyncio.run(scenario())
    assert lifecycle.state is S.STOPPED


def test_shutdown_waits_for_signal_and_runs_once(deps):
    """Only the interrupt triggers shutdown, and repeats are ignored."""
    listener = FakeListener()
    lifecycle = Lifecycle(listener, deps, shutdown_timeout=1.0, signals=())

    async def scenario():
        running = asyncio.create_task(lifecycle.run())
        await asyncio.sleep(0.1)

        assert listener.calls == ["start"]
        assert lifecycle.state is S.RUNNING

        lifecycle.request_shutdown()
        lifecycle.request_shutdown()
        await running

    asyncio.run(scenario())
    assert listener.calls.count(("shutdown", 1.0)) == 1
    assert lifecycle.state is S.STOPPED


@pytest.mark.skipif(sys.platform == "win32", reason="needs loop signal handlers")
def test_sigint_triggers_shutdown(deps):
    """A real SIGINT delivered to the process drains the listener."""
    listener = FakeListener()
    lifecycle = Lifecycle(listener, deps, shutdown_timeout=1.0, signals=(signal.SIGINT,))

    async def scenario():
        asyncio.get_running_loop().call_later(0.05, os.kill, os.getpid(), signal.SIGINT)
        await lifecycle.run()

    asyncio.run(scenario())
    assert lifecycle.state is S.STOPPED
    assert ("shutdown", 1.0) in listener.calls


def test_bind_failure_is_fatal(deps, read_log):
    """A bind failure goes from STARTING to FAILED with one fatal line."""
    listener = FakeListener(bind_error=BindError("address already in use"))
    lifecycle = Lifecycle(listener, deps, signals=())

    with pytest.raises(BindError) as exc_info:
        asyncio.run(lifecycle.run())

    assert lifecycle.history == [S.INIT, S.STARTING, S.FAILED]
    assert listener.calls == ["start"]
    # Logged from the listener task itself.
    assert exc_info.value.reported is True
    critical = [r for r in read_log() if r["levelname"] == "CRITICAL"]
    assert len(critical) == 1
    assert "address already in use" in critical[0]["message"]


def test_unexpected_listener_error_is_logged(deps, read_log):
    """Errors other than BindError are still logged by the listener task."""
    listener = FakeListener(bind_error=OSError(98, "Address already in use"))
    lifecycle = Lifecycle(listener, deps, signals=())

    with pytest.raises(OSError):
        asyncio.run(lifecycle.run())

    assert lifecycle.history == [S.INIT, S.STARTING, S.FAILED]
    critical = [r for r in read_log() if r["levelname"] == "CRITICAL"]
    assert len(critical) == 1
    assert "Address already in use" in critical[0]["message"]
    assert critical[0]["error_type"] == "OSError"


def test_listener_exiting_on_its_own_is_fatal(deps):
    """A listener that stops while RUNNING without an interrupt fails the lifecycle."""
    lifecycle = Lifecycle(FakeListener(exit_on_own=True), deps, signals=())

    with pytest.raises(BindError, match="without a shutdown request"):
        asyncio.run(lifecycle.run())

    assert lifecycle.history == [S.INIT, S.STARTING, S.RUNNING, S.FAILED]


def test_drain_timeout_is_fatal_and_cancels_listener(deps):
    """Exceeding the drain deadline fails and cancels the listener task."""
    listener = FakeListener(drain_seconds=5.0)
    lifecycle = Lifecycle(listener, deps, shutdown_timeout=0.1, signals=())

    with pytest.raises(ShutdownError) as exc_info:
        run_with_interrupt(lifecycle)

    assert exc_info.value.timed_out is True
    assert lifecycle.history[-2:] == [S.STOPPING, S.FAILED]
    assert listener.cancelled is True


def test_lingering_listener_is_bounded_by_the_same_deadline(deps):
    """A listener that drains but never returns is cut off at the deadline."""
    listener = FakeListener(drain_seconds=0.1, linger=True)
    lifecycle = Lifecycle(listener, deps, shutdown_timeout=0.3, signals=())

    async def scenario():
        running = asyncio.create_task(lifecycle.run())
        await asyncio.wait_for(listener.ready.wait(), timeout=2.0)
        started = time.monotonic()
        lifecycle.request_shutdown()
        with pytest.raises(ShutdownError) as exc_info:
            await running
        return exc_info.value, time.monotonic() - started

    error, elapsed = asyncio.run(scenario())
    assert error.timed_out is True
    assert elapsed < 0.3 + 0.2
    assert listener.cancelled is True
    assert lifecycle.history[-2:] == [S.STOPPING, S.FAILED]


def test_run_only_once(deps):
    """A finished lifecycle cannot be run again."""
    lifecycle = Lifecycle(FakeListener(), deps, shutdown_timeout=0.5, signals=())
    run_with_interrupt(lifecycle)

    with pytest.raises(RuntimeError):
        asyncio.run(lifecycle.run())
