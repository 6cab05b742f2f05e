"""HTTP API: the FastAPI app and the uvicorn server hosting it."""

from .server import Server, initialize_route

__all__ = [
    "Server",
    "initialize_route",
]
