"""Repository protocol used by the service layer."""

from datetime import datetime
from typing import Protocol, runtime_checkable


@runtime_checkable
class HealthRepository(Protocol):
    """Data access the service layer relies on."""

    async def health_check(self) -> bool:
        """Return True if the backing store answers, False otherwise."""
        ...

    async def server_time(self) -> datetime | None:
        """Return the database's clock, or None if unavailable."""
        ...
