"""Chat HTTP and WebSocket application."""

from ._app import create_app
from ._context import ServerContext
from ._embedded import EmbeddedServer

__all__ = ["EmbeddedServer", "ServerContext", "create_app"]
