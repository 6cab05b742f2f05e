"""Data Transfer Objects for API contracts.

These Pydantic models define the external API contract.
"""

from .responses import HealthResponse, RootResponse

__all__ = [
    "HealthResponse",
    "RootResponse",
]
