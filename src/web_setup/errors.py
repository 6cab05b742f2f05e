"""Application errors.

Every error raised during boot or shutdown is terminal for the process.
The entry point logs it once at CRITICAL level and exits with status 1;
nothing in this package retries or degrades after one of these.
"""


class AppError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        # Set once the error has been written to the log sink.
        self.reported = False
        super().__init__(message)


class ConfigError(AppError):
    """Missing or malformed environment configuration."""


class DatabaseConnectionError(AppError):
    """The database could not be opened or did not answer the liveness probe."""


class UnsupportedDriverError(DatabaseConnectionError):
    """The configured database driver is not one this service can talk to."""


class BindError(AppError):
    """The HTTP listener could not bind, or stopped serving on its own."""


class ShutdownError(AppError):
    """Draining the HTTP server failed or did not finish before the deadline."""

    def __init__(
        self,
        message: str,
        timed_out: bool = False,
        details: dict | None = None,
    ) -> None:
        self.timed_out = timed_out
        super().__init__(message, details)
