"""Response DTOs for API endpoints."""

from pydantic import BaseModel, Field


class RootResponse(BaseModel):
    """Response DTO for the service information endpoint."""

    name: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")
    endpoints: dict[str, str] = Field(
        default_factory=dict,
        description="Available endpoints by name",
    )


class HealthResponse(BaseModel):
    """Response DTO for health check."""

    status: str = Field(..., description="Health status: 'healthy' or 'unhealthy'")
    database_healthy: bool = Field(..., description="Whether the database answered the probe")
    database_time: str | None = Field(
        None,
        description="Database clock (ISO 8601) when reachable",
    )
    uptime_seconds: float = Field(..., description="Seconds since the service layer was built", ge=0.0)
