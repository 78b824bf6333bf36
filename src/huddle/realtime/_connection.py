"""WebSocket connection handle with a bounded outbound queue."""

from typing import TYPE_CHECKING, final

import anyio
from starlette.websockets import WebSocket, WebSocketDisconnect
from structlog.typing import FilteringBoundLogger  # noqa: TC002

from huddle.utils import get_fallback_logger

if TYPE_CHECKING:
    from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

DEFAULT_MAX_PENDING = 256


@final
class WebSocketConnection:
    """Owns one accepted WebSocket and its outbound frame queue.

    Frames are enqueued with :meth:`send_nowait` and written by :meth:`run`,
    so a slow client only ever loses its own frames. Inbound frames are read
    and discarded; the connection is receive-only from the client's side.
    """

    __slots__ = (
        "_close_code",
        "_close_reason",
        "_closed",
        "_inbox",
        "_logger",
        "_outbox",
        "_websocket",
    )

    def __init__(
        self,
        websocket: WebSocket,
        *,
        max_pending: int = DEFAULT_MAX_PENDING,
        logger: FilteringBoundLogger | None = None,
    ) -> None:
        self._websocket = websocket
        self._outbox: MemoryObjectSendStream[str]
        self._inbox: MemoryObjectReceiveStream[str]
        self._outbox, self._inbox = anyio.create_memory_object_stream[str](max_pending)
        self._close_code: int | None = None
        self._close_reason = ""
        self._closed = anyio.Event()
        self._logger: FilteringBoundLogger = logger or get_fallback_logger()

    def send_nowait(self, frame: str) -> None:
        self._outbox.send_nowait(frame)

    def close_nowait(self, code: int, reason: str = "") -> None:
        if self._close_code is None:
            self._close_code = code
            self._close_reason = reason
        self._outbox.close()

    async def wait_closed(self) -> None:
        await self._closed.wait()

    async def run(self) -> None:
        """Write queued frames until closed by either side."""
        try:
            async with anyio.create_task_group() as tg:
                tg.start_soon(self._read_until_disconnect, tg.cancel_scope)
                try:
                    async for frame in self._inbox:
                        await self._websocket.send_text(frame)
                    if self._close_code is not None:
                        await self._websocket.close(self._close_code, self._close_reason)
                except (WebSocketDisconnect, RuntimeError, OSError) as e:
                    self._logger.debug("websocket_send_aborted", error=repr(e))
                tg.cancel_scope.cancel()
        finally:
            self._outbox.close()
            self._inbox.close()
            self._closed.set()

    async def _read_until_disconnect(self, scope: anyio.CancelScope) -> None:
        try:
            while True:
                message = await self._websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            self._logger.debug("websocket_receive_aborted", error=repr(e))
        self._outbox.close()
        scope.cancel()
