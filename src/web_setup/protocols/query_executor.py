"""Query execution protocol.

The capability the repository layer needs from a database handle: a
liveness probe and the ability to run a statement.
"""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class QueryExecutor(Protocol):
    """Something that can execute queries.

    ``web_setup.database.Database`` is the production implementation.
    """

    async def ping(self) -> None:
        """Round-trip to the database.

        Raises:
            DatabaseConnectionError: If the database does not answer
        """
        ...

    async def execute(self, sql: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Execute a statement.

        Args:
            sql: Statement text with ``:name`` placeholders
            params: Bound parameters

        Returns:
            Result rows as dicts
        """
        ...
