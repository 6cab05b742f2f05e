"""HTTP server for the route layer.

Wraps a FastAPI app and a uvicorn server behind three calls:

    server = initialize_route(service, deps, port=8080)
    server.register_routes()
    await server.start()            # blocks until stopped
    await server.shutdown(10.0)     # from another task

Signal handling is left to the lifecycle orchestrator; uvicorn's own
handlers are disabled.
"""

import asyncio
import contextlib
import socket
from collections.abc import Callable, Iterator

import uvicorn
from fastapi import FastAPI

from web_setup import __version__
from web_setup.dependencies import DependencyHandler
from web_setup.dto import HealthResponse, RootResponse
from web_setup.errors import BindError, ShutdownError
from web_setup.handlers import HealthHandler
from web_setup.protocols import HealthService


class _UvicornServer(uvicorn.Server):
    """uvicorn server that does not install signal handlers.

    Calls ``on_started`` once the sockets accept connections.
    """

    def __init__(self, config: uvicorn.Config, on_started: Callable[[], None]) -> None:
        super().__init__(config)
        self._on_started = on_started

    async def startup(self, sockets: list[socket.socket] | None = None) -> None:
        await super().startup(sockets=sockets)
        if self.started:
            self._on_started()

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


class Server:
    """Owns the routing table and the listening socket.

    Construction only wires objects together. Binding happens in ``start``.
    """

    def __init__(
        self,
        service: HealthService,
        deps: DependencyHandler,
        host: str = "0.0.0.0",
        port: int = 8000,
    ) -> None:
        """Initialize the server.

        Args:
            service: Service layer the routes delegate to
            deps: Shared dependency container
            host: Interface to bind
            port: TCP port to bind (0 picks a free port)
        """
        self._service = service
        self._deps = deps
        self._host = host
        self._port = port
        self._handler = HealthHandler(service=service, deps=deps)
        self._app = FastAPI(
            title="Web Setup API",
            description="PostgreSQL-backed HTTP service",
            version=__version__,
        )
        self._routes_registered = False
        self._uvicorn: _UvicornServer | None = None
        self._started = asyncio.Event()
        self._stopped = asyncio.Event()
        self._shutdown_requested = False

    @property
    def app(self) -> FastAPI:
        return self._app

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        """Configured port, or the bound port once ``start`` has bound."""
        return self._port

    @property
    def started(self) -> bool:
        """True once uvicorn is accepting connections."""
        return self._uvicorn is not None and self._uvicorn.started

    def register_routes(self) -> None:
        """Populate the routing table. Must be called exactly once, before ``start``."""
        if self._routes_registered:
            raise RuntimeError("routes already registered")

        self._app.add_api_route(
            "/",
            self._handler.root,
            methods=["GET"],
            response_model=RootResponse,
            tags=["Root"],
        )
        self._app.add_api_route(
            "/health",
            self._handler.health,
            methods=["GET"],
            response_model=HealthResponse,
            tags=["Health"],
        )
        self._routes_registered = True

    async def start(self) -> None:
        """Bind the listener and serve until ``shutdown`` is called.

        Raises:
            BindError: If the address cannot be bound or listened on, or the server
                stops without having been asked to
        """
        if self._uvicorn is not None:
            raise RuntimeError("server already started")

        sock = self._bind()
        config = uvicorn.Config(
            self._app,
            log_config=None,
            lifespan="off",
        )
        self._uvicorn = _UvicornServer(config, on_started=self._started.set)
        self._deps.logger.adopt("uvicorn")
        self._deps.logger.info("Starting HTTP server on %s:%s", self._host, self._port)

        try:
            await self._uvicorn.serve(sockets=[sock])
        except OSError as e:
            if self._uvicorn.started:
                raise
            raise BindError(f"cannot listen on {self._host}:{self._port}: {e}") from e
        finally:
            sock.close()
            self._stopped.set()

        if not self._uvicorn.started and not self._shutdown_requested:
            raise BindError(f"HTTP server on {self._host}:{self._port} failed to start")

    async def wait_started(self) -> None:
        """Return once uvicorn accepts connections."""
        await self._started.wait()

    async def shutdown(self, timeout: float) -> None:
        """Stop accepting connections and drain in-flight requests.

        When ``timeout`` elapses first, the server is forced to exit and any
        request still running is cancelled.

        Raises:
            ShutdownError: If draining does not finish within ``timeout`` seconds
        """
        if self._uvicorn is None:
            return

        self._shutdown_requested = True
        self._uvicorn.should_exit = True

        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            self._uvicorn.force_exit = True
            for task in list(self._uvicorn.server_state.tasks):
                task.cancel()
            raise ShutdownError(
                f"HTTP server did not drain within {timeout}s",
                timed_out=True,
            ) from None

        self._deps.logger.info("HTTP server drained")

    def _bind(self) -> socket.socket:
        family = socket.AF_INET6 if ":" in self._host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self._host, self._port))
        except OSError as e:
            sock.close()
            raise BindError(f"cannot bind {self._host}:{self._port}: {e}") from e

        self._port = sock.getsockname()[1]
        sock.set_inheritable(True)
        return sock


def initialize_route(
    service: HealthService,
    deps: DependencyHandler,
    host: str = "0.0.0.0",
    port: int = 8000,
) -> Server:
    """Build the route layer on top of the service."""
    return Server(service=service, deps=deps, host=host, port=port)
