"""Service protocol used by the route layer."""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class HealthService(Protocol):
    """Business operations exposed over HTTP."""

    async def is_healthy(self) -> bool:
        ...

    async def status(self) -> dict[str, Any]:
        """Return a status snapshot (health, database time, uptime)."""
        ...
