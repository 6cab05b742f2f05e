"""Structured file logging.

JSON-structured logging to a size-rotated file, optionally echoed to stdout.

The process builds exactly one ``Log`` and hands it to every layer through
the ``DependencyHandler``; nothing here keeps a module-level logger.

Usage:
    from web_setup.logger import new_file_logger

    log = new_file_logger("logs", "log.txt", max_size_mb=1, level="DEBUG", console=True)
    log.info("Listening on port %s", 8080, port=8080)
    log.close()
"""

import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from pythonjsonlogger.json import JsonFormatter

BACKUP_COUNT = 5
_SENSITIVE_KEYS = ("password", "secret", "api_key", "token")


class RedactingJsonFormatter(JsonFormatter):
    """JSON formatter that adds a UTC timestamp and redacts credential fields."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        if not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.now(timezone.utc).isoformat()

        for key in list(log_record):
            if any(marker in key.lower() for marker in _SENSITIVE_KEYS):
                log_record[key] = "***REDACTED***"


class Log:
    """Leveled logger with an explicit close.

    ``fatal`` only records the message at CRITICAL level; terminating the
    process is left to the entry point so resources are released first.
    """

    def __init__(self, logger: logging.Logger, handlers: list[logging.Handler]) -> None:
        self._logger = logger
        self._handlers = handlers
        self._adopted: list[logging.Logger] = []
        self._closed = False

    @property
    def name(self) -> str:
        return self._logger.name

    @property
    def closed(self) -> bool:
        return self._closed

    def debug(self, msg: str, *args: Any, **extra: Any) -> None:
        self._logger.debug(msg, *args, extra=extra or None)

    def info(self, msg: str, *args: Any, **extra: Any) -> None:
        self._logger.info(msg, *args, extra=extra or None)

    def warning(self, msg: str, *args: Any, **extra: Any) -> None:
        self._logger.warning(msg, *args, extra=extra or None)

    def error(self, msg: str, *args: Any, **extra: Any) -> None:
        self._logger.error(msg, *args, extra=extra or None)

    def fatal(self, msg: str, *args: Any, **extra: Any) -> None:
        self._logger.critical(msg, *args, extra=extra or None)

    def adopt(self, name: str) -> None:
        """Route another named logger (e.g. ``uvicorn``) to this log's handlers."""
        other = logging.getLogger(name)
        if other in self._adopted:
            return
        for handler in self._handlers:
            other.addHandler(handler)
        other.setLevel(self._logger.level)
        other.propagate = False
        self._adopted.append(other)

    def close(self) -> None:
        """Flush and detach all handlers. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True

        for handler in self._handlers:
            for target in (self._logger, *self._adopted):
                target.removeHandler(handler)
            handler.flush()
            handler.close()
        self._adopted.clear()


def new_file_logger(
    directory: str | Path,
    filename: str,
    max_size_mb: int = 1,
    level: str = "DEBUG",
    console: bool = True,
    name: str = "web_setup",
) -> Log:
    """Create the process logger.

    Args:
        directory: Directory for log files (created if missing)
        filename: Log file name inside ``directory``
        max_size_mb: Rotate the file once it reaches this size
        level: Minimum level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        console: Also write records to stdout

    Returns:
        A ready ``Log``

    Raises:
        OSError: If the log directory or file cannot be created
        ValueError: If ``level`` is not a known level name
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"unknown log level: {level}")

    path = Path(directory)
    path.mkdir(parents=True, exist_ok=True)

    formatter = RedactingJsonFormatter(
        "%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

    handlers: list[logging.Handler] = [
        RotatingFileHandler(
            path / filename,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        )
    ]
    if console:
        handlers.append(logging.StreamHandler(sys.stdout))

    logger = logging.getLogger(name)
    logger.setLevel(numeric_level)
    logger.propagate = False
    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return Log(logger, handlers)
