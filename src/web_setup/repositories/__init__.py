"""Repository layer for data access.

This layer wraps the database handle behind the QueryExecutor protocol.
Repositories are protocol-based (structural typing), not inheritance-based.
"""

from web_setup.protocols import HealthRepository, QueryExecutor

from .postgres_repository import PostgresRepository, initialize_repository

__all__ = [
    "HealthRepository",
    "PostgresRepository",
    "QueryExecutor",
    "initialize_repository",
]
