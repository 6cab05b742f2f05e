"""Listener protocol driven by the lifecycle orchestrator."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class Listener(Protocol):
    """A server with a blocking ``start`` and a deadline-bounded ``shutdown``."""

    async def start(self) -> None:
        """Bind and serve until stopped.

        Raises:
            BindError: If the listener cannot bind or stops on its own
        """
        ...

    async def wait_started(self) -> None:
        """Return once the listener accepts connections.

        Never returns if ``start`` fails; callers wait on ``start`` as well.
        """
        ...

    async def shutdown(self, timeout: float) -> None:
        """Stop accepting connections and drain in-flight requests.

        Raises:
            ShutdownError: If draining fails or exceeds ``timeout`` seconds
        """
        ...
