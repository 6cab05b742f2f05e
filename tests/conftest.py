import json
import socket

import pytest

from web_setup.config import Settings
from web_setup.dependencies import DependencyHandler
from web_setup.logger import new_file_logger

from fakes import FakeDatabase

ENV = {
    "DB_HOST": "localhost",
    "DB_PORT": "5432",
    "DB_USER": "app",
    "DB_PASSWORD": "s3cret",
    "DB_NAME": "app",
    "SERVER_PORT": "8080",
}


@pytest.fixture
def env():
    """A complete, valid environment mapping."""
    return dict(ENV)


@pytest.fixture
def settings(env):
    return Settings.from_env(env)


@pytest.fixture
def log(tmp_path):
    """File logger writing to a temporary directory."""
    logger = new_file_logger(tmp_path / "logs", "log.txt", console=False)
    yield logger
    logger.close()


@pytest.fixture
def deps(log):
    return DependencyHandler(logger=log)


@pytest.fixture
def db():
    return FakeDatabase()


@pytest.fixture
def read_log(tmp_path):
    """Return the JSON records written to the temporary log file."""

    def _read():
        path = tmp_path / "logs" / "log.txt"
        if not path.exists():
            return []
        return [json.loads(line) for line in path.read_text().splitlines() if line.strip()]

    return _read


@pytest.fixture
def free_port():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]
