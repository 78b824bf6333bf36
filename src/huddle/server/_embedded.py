"""uvicorn server that runs inside a host-owned event loop."""

import socket
from collections.abc import Generator
from contextlib import contextmanager

import anyio
import uvicorn


class EmbeddedServer(uvicorn.Server):
    """A uvicorn server that leaves process signal handling to its owner.

    The supervisor host and the worker both decide themselves what a signal
    means, so the server never installs handlers or re-raises signals.
    :attr:`ready` is set once startup has finished and the server accepts
    connections.
    """

    def __init__(self, config: uvicorn.Config) -> None:
        super().__init__(config)
        self.ready = anyio.Event()

    @contextmanager
    def capture_signals(self) -> Generator[None]:
        yield

    async def startup(self, sockets: list[socket.socket] | None = None) -> None:
        await super().startup(sockets=sockets)
        if self.started:
            self.ready.set()
