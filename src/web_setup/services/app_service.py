"""Application service.

Coordinates the repository layer and reports service status to the
route layer.
"""

import time
from typing import Any

from web_setup.dependencies import DependencyHandler
from web_setup.protocols import HealthRepository


class AppService:
    """Core service sitting between the repository and the HTTP routes.

    Depends on the HealthRepository PROTOCOL, so any data access
    implementation (PostgreSQL, an in-memory fake) can be plugged in.
    """

    def __init__(self, repository: HealthRepository, deps: DependencyHandler) -> None:
        """Initialize the service.

        Args:
            repository: Data access layer (required).
            deps: Shared dependency container (required).
        """
        self._repository = repository
        self._deps = deps
        self._started_at = time.monotonic()

    @classmethod
    def create(cls, repository: HealthRepository, deps: DependencyHandler) -> "AppService":
        return cls(repository=repository, deps=deps)

    async def is_healthy(self) -> bool:
        return await self._repository.health_check()

    async def status(self) -> dict[str, Any]:
        """Get a status snapshot.

        Returns:
            Dictionary with ``healthy``, ``database_time`` (ISO string or None)
            and ``uptime_seconds``
        """
        healthy = await self._repository.health_check()
        db_time = await self._repository.server_time() if healthy else None
        return {
            "healthy": healthy,
            "database_time": db_time.isoformat() if db_time else None,
            "uptime_seconds": round(self.uptime_seconds, 3),
        }

    @property
    def uptime_seconds(self) -> float:
        return time.monotonic() - self._started_at

    @property
    def repository(self) -> HealthRepository:
        """Get the underlying repository (for testing)."""
        return self._repository


def initialize_service(repository: HealthRepository, deps: DependencyHandler) -> AppService:
    """Build the service layer on top of the repository."""
    return AppService.create(repository=repository, deps=deps)
