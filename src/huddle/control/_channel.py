"""Control channel endpoints.

An endpoint sends and receives :data:`ControlMessage` values as
newline-delimited JSON. The host talks to the worker over the worker's
stdin/stdout pipes; the worker talks back over its own stdio. End of stream
surfaces as :class:`anyio.EndOfStream` from ``receive`` and ends iteration.
"""

from typing import BinaryIO, Protocol, Self, final, runtime_checkable

import anyio
from anyio.abc import AnyByteReceiveStream, AnyByteSendStream  # noqa: TC002
from anyio.streams.buffered import BufferedByteReceiveStream

from huddle.exceptions import ControlProtocolError

from ._messages import ControlMessage, decode_message, encode_message

# Longest accepted control line, newline excluded
MAX_LINE_BYTES = 64 * 1024


@runtime_checkable
class ControlEndpoint(Protocol):
    """One side of the control channel."""

    async def send(self, message: ControlMessage) -> None:
        """Send a message.

        Raises:
            anyio.BrokenResourceError: If the peer is gone.
            anyio.ClosedResourceError: If this endpoint was closed.
        """
        ...

    async def receive(self) -> ControlMessage:
        """Receive the next message.

        Raises:
            anyio.EndOfStream: If the peer closed its side.
            ControlProtocolError: If the next line is malformed.
        """
        ...

    async def aclose(self) -> None:
        """Close this side of the channel."""
        ...

    def __aiter__(self) -> Self: ...

    async def __anext__(self) -> ControlMessage: ...


class _IterableEndpoint:
    async def receive(self) -> ControlMessage:
        raise NotImplementedError

    def __aiter__(self) -> Self:
        return self

    async def __anext__(self) -> ControlMessage:
        try:
            return await self.receive()
        except anyio.EndOfStream:
            raise StopAsyncIteration from None


@final
class StreamControlEndpoint(_IterableEndpoint):
    """Endpoint over anyio byte streams (process pipes or memory streams)."""

    __slots__ = ("_max_line", "_reader", "_receive_stream", "_send_lock", "_send_stream")

    def __init__(
        self,
        send_stream: AnyByteSendStream | None,
        receive_stream: AnyByteReceiveStream | None,
        *,
        max_line: int = MAX_LINE_BYTES,
    ) -> None:
        """Initialize the endpoint.

        Args:
            send_stream: Outbound byte stream, or None for a receive-only side.
            receive_stream: Inbound byte stream, or None for a send-only side.
            max_line: Longest accepted line in bytes.
        """
        self._send_stream = send_stream
        self._receive_stream = receive_stream
        self._reader = (
            BufferedByteReceiveStream(receive_stream)
            if receive_stream is not None
            else None
        )
        self._max_line = max_line
        self._send_lock = anyio.Lock()

    async def send(self, message: ControlMessage) -> None:
        if self._send_stream is None:
            msg = "Endpoint has no outbound stream"
            raise anyio.ClosedResourceError(msg)
        async with self._send_lock:
            await self._send_stream.send(encode_message(message))

    async def receive(self) -> ControlMessage:
        if self._reader is None:
            raise anyio.EndOfStream
        try:
            line = await self._reader.receive_until(b"\n", self._max_line)
        except anyio.IncompleteRead:
            raise anyio.EndOfStream from None
        except anyio.DelimiterNotFound as e:
            msg = f"Control line exceeds {self._max_line} bytes"
            raise ControlProtocolError(msg) from e
        except (anyio.ClosedResourceError, anyio.BrokenResourceError):
            raise anyio.EndOfStream from None
        return decode_message(line)

    async def aclose(self) -> None:
        if self._send_stream is not None:
            await self._send_stream.aclose()
        if self._receive_stream is not None:
            await self._receive_stream.aclose()


@final
class StdioEndpoint(_IterableEndpoint):
    """Worker-side endpoint over blocking binary stdin/stdout handles.

    Reads run in a worker thread that is abandoned on cancellation, so a
    pending read never holds up shutdown.
    """

    __slots__ = ("_closed", "_send_lock", "_stdin", "_stdout")

    def __init__(self, stdin: BinaryIO, stdout: BinaryIO) -> None:
        self._stdin = stdin
        self._stdout = stdout
        self._send_lock = anyio.Lock()
        self._closed = False

    async def send(self, message: ControlMessage) -> None:
        if self._closed:
            msg = "Endpoint is closed"
            raise anyio.ClosedResourceError(msg)
        data = encode_message(message)
        async with self._send_lock:
            try:
                _ = self._stdout.write(data)
                self._stdout.flush()
            except (BrokenPipeError, ValueError) as e:
                raise anyio.BrokenResourceError from e

    async def receive(self) -> ControlMessage:
        if self._closed:
            raise anyio.EndOfStream
        line = await anyio.to_thread.run_sync(
            self._stdin.readline, abandon_on_cancel=True
        )
        if not line:
            raise anyio.EndOfStream
        return decode_message(line)

    async def aclose(self) -> None:
        self._closed = True


def create_memory_endpoint_pair(
    max_buffer: int = 64,
) -> tuple[StreamControlEndpoint, StreamControlEndpoint]:
    """Create two connected in-process endpoints.

    Returns:
        A ``(host, worker)`` pair; what one side sends the other receives.
    """
    host_send, worker_receive = anyio.create_memory_object_stream[bytes](max_buffer)
    worker_send, host_receive = anyio.create_memory_object_stream[bytes](max_buffer)
    return (
        StreamControlEndpoint(host_send, host_receive),
        StreamControlEndpoint(worker_send, worker_receive),
    )
