"""Process entry point.

Boot order: logger, configuration, database (with liveness probe),
repository -> service -> server, routes, then the lifecycle. Any AppError
ends the process with one fatal log line and exit status 1; the database
handle and the logger are released on every path.
"""

import argparse
import asyncio
import signal
import sys
from collections.abc import Awaitable, Callable, Iterable

from web_setup.api import Server, initialize_route
from web_setup.config import LogSettings, Settings, load_env_file
from web_setup.database import Database, load_db
from web_setup.dependencies import DependencyHandler
from web_setup.errors import AppError, ConfigError
from web_setup.lifecycle import Lifecycle
from web_setup.logger import Log, new_file_logger
from web_setup.protocols import QueryExecutor
from web_setup.repositories import initialize_repository
from web_setup.services import initialize_service

DatabaseOpener = Callable[[Settings, Log], Awaitable[Database]]


def bootstrap(settings: Settings, deps: DependencyHandler, db: QueryExecutor) -> Server:
    """Wire repository -> service -> server and register routes. Does no I/O."""
    repo = initialize_repository(db, deps)
    service = initialize_service(repo, deps)
    server = initialize_route(
        service,
        deps,
        host=settings.server_host,
        port=settings.server_port,
    )
    server.register_routes()
    return server


async def run(
    settings: Settings,
    log: Log,
    open_db: DatabaseOpener | None = None,
    signals: Iterable[signal.Signals] = (signal.SIGINT,),
) -> Lifecycle:
    """Open the database, serve until interrupted, drain, close the database.

    Args:
        settings: Validated settings
        log: The process logger
        open_db: Database opener, ``load_db`` unless given
        signals: Signals that trigger shutdown

    Returns:
        The finished Lifecycle (state STOPPED)

    Raises:
        AppError: On any boot or shutdown failure
    """
    deps = DependencyHandler(logger=log)
    open_db = open_db or load_db

    async with await open_db(settings, log) as db:
        server = bootstrap(settings, deps, db)
        lifecycle = Lifecycle(
            server,
            deps,
            shutdown_timeout=settings.shutdown_timeout,
            signals=signals,
        )
        await lifecycle.run()

    return lifecycle


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="web-setup", description="Run the web service.")
    parser.add_argument(
        "--env-file",
        default=".env",
        help="dotenv file to load before reading the environment (default: .env)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Run the service. Returns the process exit status."""
    args = _parse_args(argv)
    load_env_file(args.env_file)

    try:
        log_settings = LogSettings.from_env()
        log = new_file_logger(
            log_settings.directory,
            log_settings.filename,
            max_size_mb=log_settings.max_size_mb,
            level=log_settings.level,
            console=log_settings.console,
        )
    except (ConfigError, OSError, ValueError) as e:
        print(f"logger initialization failed: {e}", file=sys.stderr)
        return 1

    try:
        settings = Settings.from_env()
        asyncio.run(run(settings, log))
        log.info("Server stopped cleanly")
        return 0
    except AppError as e:
        if not e.reported:
            log.fatal("%s", e, error_type=type(e).__name__)
        return 1
    finally:
        log.close()


if __name__ == "__main__":
    sys.exit(main())
