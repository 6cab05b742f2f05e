"""PostgreSQL implementation of HealthRepository.

Satisfies the HealthRepository protocol through structural typing.
"""

from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from web_setup.dependencies import DependencyHandler
from web_setup.errors import DatabaseConnectionError
from web_setup.protocols import QueryExecutor


class PostgresRepository:
    """Data access over any QueryExecutor.

    Construction only stores references; all I/O happens in the methods.
    """

    def __init__(self, db: QueryExecutor, deps: DependencyHandler) -> None:
        """Initialize the repository.

        Args:
            db: Database handle (anything that can execute queries)
            deps: Shared dependency container
        """
        self._db = db
        self._deps = deps

    @classmethod
    def create(cls, db: QueryExecutor, deps: DependencyHandler) -> "PostgresRepository":
        return cls(db=db, deps=deps)

    async def health_check(self) -> bool:
        """Check if the database is reachable.

        Returns:
            True if healthy, False otherwise
        """
        try:
            await self._db.ping()
            return True
        except DatabaseConnectionError as e:
            self._deps.logger.error("Database health check failed: %s", e)
            return False

    async def server_time(self) -> datetime | None:
        """Read the database clock.

        Returns:
            The database's ``now()``, or None if the query fails
        """
        try:
            rows = await self._db.execute("SELECT now() AS now")
        except (SQLAlchemyError, OSError) as e:
            self._deps.logger.error("Failed to read database time: %s", e)
            return None
        if not rows:
            return None
        return rows[0].get("now")

    @property
    def db(self) -> QueryExecutor:
        """Get the underlying database handle (for testing)."""
        return self._db


def initialize_repository(db: QueryExecutor, deps: DependencyHandler) -> PostgresRepository:
    """Build the repository layer on top of the database handle."""
    return PostgresRepository.create(db=db, deps=deps)
