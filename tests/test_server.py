"""
Tests for the uvicorn-backed server: binding, serving and draining.
"""

import asyncio
import socket
import time

import httpx
import pytest
import uvicorn

from web_setup.api import initialize_route
from web_setup.errors import BindError, ShutdownError
from web_setup.repositories import initialize_repository
from web_setup.services import initialize_service


@pytest.fixture
def make_server(deps, db):
    def _make(port=0):
        service = initialize_service(initialize_repository(db, deps), deps)
        server = initialize_route(service, deps, host="127.0.0.1", port=port)
        server.register_routes()
        return server

    return _make


async def wait_until_started(server, task, timeout=5.0):
    ready = asyncio.create_task(server.wait_started())
    done, _ = await asyncio.wait(
        {ready, task}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
    )
    if task in done:
        ready.cancel()
        task.result()
    if ready not in done:
        ready.cancel()
        raise AssertionError("server did not start")
    assert server.started


def test_serves_and_drains(make_server):
    """The server answers on its bound port and drains on shutdown."""

    async def scenario():
        server = make_server()
        task = asyncio.create_task(server.start())
        await wait_until_started(server, task)

        async with httpx.AsyncClient() as client:
            response = await client.get(f"http://127.0.0.1:{server.port}/")

        await server.shutdown(5.0)
        await asyncio.wait_for(task, timeout=2.0)
        return server, response

    server, response = asyncio.run(scenario())
    assert response.status_code == 200
    assert server.port != 0


def test_refuses_connections_after_shutdown(make_server):
    """Once drained, new connections are refused."""

    async def scenario():
        server = make_server()
        task = asyncio.create_task(server.start())
        await wait_until_started(server, task)
        await server.shutdown(5.0)
        await task

        async with httpx.AsyncClient() as client:
            with pytest.raises(httpx.ConnectError):
                await client.get(f"http://127.0.0.1:{server.port}/")

    asyncio.run(scenario())


def test_bind_failure_raises_bind_error(make_server):
    """A port that is already taken raises BindError."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
        blocker.bind(("127.0.0.1", 0))
        blocker.listen()
        port = blocker.getsockname()[1]

        server = make_server(port=port)
        with pytest.raises(BindError, match=str(port)):
            asyncio.run(server.start())


def test_shutdown_before_start_is_noop(make_server):
    """Shutting down a server that never started does nothing."""
    asyncio.run(make_server().shutdown(1.0))


def test_start_twice_is_rejected(make_server):
    """A running server cannot be started again."""

    async def scenario():
        server = make_server()
        task = asyncio.create_task(server.start())
        await wait_until_started(server, task)
        try:
            with pytest.raises(RuntimeError):
                await server.start()
        finally:
            await server.shutdown(5.0)
            await task

    asyncio.run(scenario())


def test_shutdown_deadline_is_enforced(make_server):
    """A handler slower than the deadline yields a timeout, not a hang."""

    async def scenario():
        server = make_server()
        handler_started = asyncio.Event()

        async def slow():
            handler_started.set()
            await asyncio.sleep(30)
            return {"done": True}

        server.app.add_api_route("/slow", slow, methods=["GET"])
        task = asyncio.create_task(server.start())
        await wait_until_started(server, task)

        client = httpx.AsyncClient(timeout=30)
        request = asyncio.create_task(client.get(f"http://127.0.0.1:{server.port}/slow"))
        await asyncio.wait_for(handler_started.wait(), timeout=5.0)

        started = time.monotonic()
        with pytest.raises(ShutdownError) as exc_info:
            await server.shutdown(0.3)
        elapsed = time.monotonic() - started

        # Forced exit lets the listener return promptly.
        await asyncio.wait_for(task, timeout=3.0)

        request.cancel()
        await asyncio.gather(request, return_exceptions=True)
        await client.aclose()
        return exc_info.value, elapsed

    error, elapsed = asyncio.run(scenario())
    assert error.timed_out is True
    assert elapsed < 2.0


def test_listen_failure_raises_bind_error(make_server, monkeypatch):
    """An OSError while uvicorn starts listening surfaces as BindError."""

    async def refuse(self, sockets=None):
        raise OSError(98, "Address already in use")

    monkeypatch.setattr(uvicorn.Server, "startup", refuse)
    server = make_server()

    with pytest.raises(BindError, match="Address already in use"):
        asyncio.run(server.start())

    assert not server.started
