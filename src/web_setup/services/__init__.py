"""Service layer for business logic.

Services depend on protocols (interfaces), not concrete implementations.

Architecture:
    Server -> Service -> Repository
    (HTTP) -> (Business) -> (Data Access)
"""

from .app_service import AppService, initialize_service

__all__ = [
    "AppService",
    "initialize_service",
]
