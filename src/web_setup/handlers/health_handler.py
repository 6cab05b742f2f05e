"""HTTP handlers for service information and health.

Handlers convert service results into DTOs and set status codes.
"""

from fastapi import Response, status

from web_setup import __version__
from web_setup.dependencies import DependencyHandler
from web_setup.dto import HealthResponse, RootResponse
from web_setup.protocols import HealthService

SERVICE_NAME = "web-setup"


class HealthHandler:
    """HTTP handlers backed by a HealthService.

    Example:
        ```python
        handler = HealthHandler(service=service, deps=deps)

        @app.get("/health", response_model=HealthResponse)
        async def health(response: Response):
            return await handler.health(response)
        ```
    """

    def __init__(self, service: HealthService, deps: DependencyHandler) -> None:
        self._service = service
        self._deps = deps

    async def root(self) -> RootResponse:
        """Handle GET / requests."""
        return RootResponse(
            name=SERVICE_NAME,
            version=__version__,
            endpoints={
                "health": "/health",
                "docs": "/docs",
            },
        )

    async def health(self, response: Response) -> HealthResponse:
        """Handle GET /health requests.

        Returns 200 when the database answers, 503 otherwise.
        """
        snapshot = await self._service.status()
        healthy = bool(snapshot.get("healthy"))

        if not healthy:
            response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
            self._deps.logger.warning("Health check reported unhealthy")

        return HealthResponse(
            status="healthy" if healthy else "unhealthy",
            database_healthy=healthy,
            database_time=snapshot.get("database_time"),
            uptime_seconds=snapshot.get("uptime_seconds", 0.0),
        )
