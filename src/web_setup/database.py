"""Database connection opener.

Builds the PostgreSQL URL from settings, creates a SQLAlchemy async engine
(asyncpg driver) and gates success on an explicit ``SELECT 1`` liveness probe.
Creating the engine does no I/O, so the probe is the first real round trip.

TLS is disabled by explicit policy (``ssl=False`` on every connection); the
service is expected to reach its database over a private network.
"""

from collections.abc import Callable
from typing import Any

import asyncpg
from sqlalchemy import URL, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from web_setup.config import Settings
from web_setup.errors import DatabaseConnectionError, UnsupportedDriverError
from web_setup.logger import Log

SUPPORTED_DRIVERS = frozenset({"postgres", "postgresql"})
DRIVER_NAME = "postgresql+asyncpg"
CONNECT_TIMEOUT_SECONDS = 5
LIVENESS_QUERY = "SELECT 1"

EngineFactory = Callable[..., AsyncEngine]


class Database:
    """Owns the connection pool; satisfies the QueryExecutor protocol.

    Use as an async context manager so the pool is disposed on every exit
    path. ``close`` disposes exactly once; further calls are no-ops.
    """

    def __init__(self, engine: AsyncEngine, driver: str) -> None:
        self._engine = engine
        self._driver = driver
        self._closed = False

    @property
    def driver(self) -> str:
        return self._driver

    @property
    def closed(self) -> bool:
        return self._closed

    async def ping(self) -> None:
        """Run the liveness probe.

        Raises:
            DatabaseConnectionError: If the database does not answer
        """
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text(LIVENESS_QUERY))
        except (SQLAlchemyError, OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            raise DatabaseConnectionError(f"database ping failed: {e}") from e

    async def execute(self, sql: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Execute a statement in its own transaction.

        Returns:
            Result rows as dicts (empty for statements that return no rows)
        """
        async with self._engine.begin() as conn:
            result = await conn.execute(text(sql), params or {})
            if not result.returns_rows:
                return []
            return [dict(row) for row in result.mappings()]

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._engine.dispose()

    async def __aenter__(self) -> "Database":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


def build_dsn(settings: Settings) -> URL:
    """Build the connection URL; credentials are escaped by ``URL.create``."""
    return URL.create(
        DRIVER_NAME,
        username=settings.db_user,
        password=settings.db_password,
        host=settings.db_host,
        port=settings.db_port,
        database=settings.db_name,
    )


def open_engine(settings: Settings, engine_factory: EngineFactory = create_async_engine) -> AsyncEngine:
    """Create the engine. No connection is made until first use."""
    return engine_factory(
        build_dsn(settings),
        connect_args={"ssl": False, "timeout": CONNECT_TIMEOUT_SECONDS},
        pool_pre_ping=True,
    )


async def initialize_db(engine: AsyncEngine, driver: str) -> Database:
    """Wrap an engine in a ``Database`` handle.

    Raises:
        UnsupportedDriverError: If ``driver`` is not a PostgreSQL driver name.
            The engine is disposed before raising.
    """
    normalized = driver.strip().lower()
    if normalized not in SUPPORTED_DRIVERS:
        await engine.dispose()
        raise UnsupportedDriverError(
            f"unsupported database driver: {driver!r}",
            details={"supported": sorted(SUPPORTED_DRIVERS)},
        )
    return Database(engine, normalized)


async def load_db(
    settings: Settings,
    logger: Log,
    engine_factory: EngineFactory = create_async_engine,
) -> Database:
    """Open the database and verify it answers before returning.

    No retries: an unreachable database at boot is fatal.

    Raises:
        DatabaseConnectionError: If the probe fails (the engine is disposed)
        UnsupportedDriverError: If ``settings.db_driver`` is not supported
    """
    logger.debug(
        "Opening database %s@%s:%s/%s",
        settings.db_user,
        settings.db_host,
        settings.db_port,
        settings.db_name,
    )
    engine = open_engine(settings, engine_factory)
    db = await initialize_db(engine, settings.db_driver)

    try:
        await db.ping()
    except DatabaseConnectionError:
        await db.close()
        raise

    logger.info("Database connection established", db_host=settings.db_host)
    return db
