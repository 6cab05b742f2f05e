"""Process lifecycle: start the listener, wait for an interrupt, drain.

States:
    INIT -> STARTING -> RUNNING -> STOPPING -> STOPPED
    FAILED is reachable from any state.

The listener runs as its own asyncio task. The main task suspends until the
listener reports ready, then until the interrupt signal arrives (or the
listener dies), then asks the server to drain within a fixed deadline. The
deadline covers both the drain and the listener task returning; when it
passes the listener task is cancelled.
"""

import asyncio
import signal
from collections.abc import Iterable
from enum import Enum

from web_setup.config import DEFAULT_SHUTDOWN_TIMEOUT
from web_setup.dependencies import DependencyHandler
from web_setup.errors import AppError, BindError, ShutdownError
from web_setup.protocols import Listener


class LifecycleState(str, Enum):
    INIT = "init"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    FAILED = "failed"


class Lifecycle:
    """Drives a Listener through start, interrupt and graceful shutdown.

    ``run`` may be called once. Shutdown is triggered only by one of
    ``signals`` reaching the process, which calls ``request_shutdown``.
    """

    def __init__(
        self,
        server: Listener,
        deps: DependencyHandler,
        shutdown_timeout: float = DEFAULT_SHUTDOWN_TIMEOUT,
        signals: Iterable[signal.Signals] = (signal.SIGINT,),
    ) -> None:
        self._server = server
        self._deps = deps
        self._shutdown_timeout = shutdown_timeout
        self._signals = tuple(signals)
        self._stop = asyncio.Event()
        self._state = LifecycleState.INIT
        self.history: list[LifecycleState] = [LifecycleState.INIT]

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def shutdown_timeout(self) -> float:
        return self._shutdown_timeout

    def request_shutdown(self) -> None:
        """Signal handler: wake the main task. Repeated signals are ignored."""
        if not self._stop.is_set():
            self._deps.logger.info("Interrupt received")
        self._stop.set()

    async def run(self) -> None:
        """Start serving and block until the interrupt, then drain.

        RUNNING is entered only once the listener accepts connections; a
        listener that fails before that goes straight from STARTING to FAILED.

        Raises:
            BindError: If the listener fails to bind or stops on its own
            ShutdownError: If draining fails or exceeds the deadline
        """
        if self._state is not LifecycleState.INIT:
            raise RuntimeError(f"lifecycle already ran (state: {self._state.value})")

        loop = asyncio.get_running_loop()
        self._transition(LifecycleState.STARTING)
        installed = self._install_signal_handlers(loop)
        listener = asyncio.create_task(self._serve(), name="http-listener")
        ready = asyncio.create_task(self._server.wait_started(), name="listener-ready")
        waiter = asyncio.create_task(self._stop.wait(), name="interrupt-waiter")
        try:
            await asyncio.wait({listener, ready}, return_when=asyncio.FIRST_COMPLETED)
            if not ready.done():
                self._fail(listener)
            self._transition(LifecycleState.RUNNING)

            done, _ = await asyncio.wait(
                {listener, waiter},
                return_when=asyncio.FIRST_COMPLETED,
            )
            if listener in done and not self._stop.is_set():
                self._fail(listener)

            await self._shutdown(listener)
        finally:
            ready.cancel()
            waiter.cancel()
            self._remove_signal_handlers(loop, installed)

    async def _serve(self) -> None:
        try:
            await self._server.start()
        except Exception as e:
            self._deps.logger.fatal(
                "HTTP listener failed: %s", e, error_type=type(e).__name__
            )
            if isinstance(e, AppError):
                e.reported = True
            raise

    def _fail(self, listener: asyncio.Task) -> None:
        """Record a listener that ended without a shutdown request and raise its error."""
        self._transition(LifecycleState.FAILED)
        error = listener.exception()
        if error is None:
            error = BindError("HTTP listener stopped without a shutdown request")
            self._deps.logger.fatal("%s", error, error_type=type(error).__name__)
            error.reported = True
        raise error

    async def _shutdown(self, listener: asyncio.Task) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._shutdown_timeout
        self._transition(LifecycleState.STOPPING)
        self._deps.logger.info(
            "Draining HTTP server (deadline %.1fs)", self._shutdown_timeout
        )

        try:
            await self._server.shutdown(self._shutdown_timeout)
        except ShutdownError:
            self._transition(LifecycleState.FAILED)
            await self._cancel(listener)
            raise

        # The listener must also return within the same deadline.
        done, _ = await asyncio.wait({listener}, timeout=max(deadline - loop.time(), 0.0))
        if not done:
            self._transition(LifecycleState.FAILED)
            await self._cancel(listener)
            raise ShutdownError("HTTP listener did not exit before the deadline", timed_out=True)

        error = listener.exception()
        if error is not None:
            self._transition(LifecycleState.FAILED)
            shutdown_error = ShutdownError(f"HTTP listener failed during shutdown: {error}")
            # Already logged by the listener task.
            shutdown_error.reported = True
            raise shutdown_error from error

        self._transition(LifecycleState.STOPPED)

    async def _cancel(self, listener: asyncio.Task) -> None:
        listener.cancel()
        # Collect the outcome so a late listener error is not reported as unretrieved.
        await asyncio.gather(listener, return_exceptions=True)

    def _transition(self, state: LifecycleState) -> None:
        self._deps.logger.debug("Lifecycle %s -> %s", self._state.value, state.value)
        self._state = state
        self.history.append(state)

    def _install_signal_handlers(
        self,
        loop: asyncio.AbstractEventLoop,
    ) -> list[tuple[signal.Signals, object]]:
        installed = []
        for sig in self._signals:
            try:
                loop.add_signal_handler(sig, self.request_shutdown)
                installed.append((sig, None))
            except NotImplementedError:
                # Event loops without add_signal_handler (Windows).
                previous = signal.signal(
                    sig, lambda *_: loop.call_soon_threadsafe(self.request_shutdown)
                )
                installed.append((sig, previous))
        return installed

    def _remove_signal_handlers(
        self,
        loop: asyncio.AbstractEventLoop,
        installed: list[tuple[signal.Signals, object]],
    ) -> None:
        for sig, previous in installed:
            if previous is None:
                loop.remove_signal_handler(sig)
            else:
                signal.signal(sig, previous)
