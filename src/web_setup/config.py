import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from web_setup.errors import ConfigError

REQUIRED_VARIABLES = (
    "DB_HOST",
    "DB_PORT",
    "DB_USER",
    "DB_PASSWORD",
    "DB_NAME",
    "SERVER_PORT",
)

DEFAULT_SHUTDOWN_TIMEOUT = 10.0


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables."""

    # Database
    db_host: str
    db_port: int
    db_user: str
    db_password: str
    db_name: str
    db_driver: str = "postgres"

    # Server
    server_port: int = 8000
    server_host: str = "0.0.0.0"
    shutdown_timeout: float = DEFAULT_SHUTDOWN_TIMEOUT

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        for name, port in (("DB_PORT", self.db_port), ("SERVER_PORT", self.server_port)):
            if not 1 <= port <= 65535:
                raise ConfigError(f"{name} must be between 1 and 65535, got {port}")

        if self.shutdown_timeout <= 0:
            raise ConfigError(
                f"SHUTDOWN_TIMEOUT must be positive, got {self.shutdown_timeout}"
            )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from an environment mapping.

        Args:
            environ: Mapping to read from. Defaults to ``os.environ``.

        Returns:
            Validated, immutable Settings

        Raises:
            ConfigError: If a required variable is missing or a value is malformed
        """
        env = os.environ if environ is None else environ

        missing = [name for name in REQUIRED_VARIABLES if not env.get(name, "").strip()]
        if missing:
            raise ConfigError(
                f"missing required environment variables: {', '.join(missing)}",
                details={"missing": missing},
            )

        return cls(
            db_host=env["DB_HOST"].strip(),
            db_port=_as_int(env, "DB_PORT"),
            db_user=env["DB_USER"].strip(),
            db_password=env["DB_PASSWORD"],
            db_name=env["DB_NAME"].strip(),
            db_driver=env.get("DB_DRIVER", "postgres").strip().lower(),
            server_port=_as_int(env, "SERVER_PORT"),
            server_host=env.get("SERVER_HOST", "0.0.0.0").strip(),
            shutdown_timeout=_as_float(env, "SHUTDOWN_TIMEOUT", DEFAULT_SHUTDOWN_TIMEOUT),
        )


@dataclass(frozen=True)
class LogSettings:
    """Logger settings. All optional, so the logger exists before config errors can occur."""

    directory: str = "logs"
    filename: str = "log.txt"
    max_size_mb: int = 1
    level: str = "DEBUG"
    console: bool = True

    def __post_init__(self) -> None:
        if self.max_size_mb < 1:
            raise ConfigError(f"LOG_MAX_SIZE_MB must be at least 1, got {self.max_size_mb}")

    @property
    def path(self) -> Path:
        return Path(self.directory) / self.filename

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "LogSettings":
        env = os.environ if environ is None else environ
        return cls(
            directory=env.get("LOG_DIR", "logs"),
            filename=env.get("LOG_FILE", "log.txt"),
            max_size_mb=_as_int(env, "LOG_MAX_SIZE_MB", 1),
            level=env.get("LOG_LEVEL", "DEBUG").strip().upper(),
            console=env.get("LOG_CONSOLE", "true").strip().lower() == "true",
        )


def load_env_file(env_file: str | Path | None = ".env") -> bool:
    """Load ``env_file`` into the process environment if it exists.

    Values already present in the environment win over the file.

    Returns:
        True if a file was found and loaded
    """
    if env_file is None:
        return False
    return load_dotenv(env_file, override=False)


def _as_int(env: Mapping[str, str], name: str, default: int | None = None) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        if default is None:
            raise ConfigError(f"{name} is required")
        return default
    try:
        return int(raw.strip())
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


def _as_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None
