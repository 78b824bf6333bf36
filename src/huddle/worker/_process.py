"""The worker side of the service: owns storage and the listener.

:class:`WorkerProcess` reads control messages from its endpoint and drives
the lifecycle state machine. A start opens the chat database, binds the
port and serves the chat app with uvicorn on the bound socket. A stop tears
down in a fixed order: WebSocket connections, then the HTTP listener, then
storage, each step awaited within its own bound.
"""

import socket
from dataclasses import dataclass, field
from typing import final

import anyio
import anyio.abc
import uvicorn
from structlog.typing import FilteringBoundLogger  # noqa: TC002

from huddle.auth import AuthGate, TokenSigner
from huddle.control import (
    ControlEndpoint,
    ControlMessage,
    LogMessage,
    StartMessage,
    StatusMessage,
    StopMessage,
    WorkerStatus,
)
from huddle.enums import LogLevel
from huddle.exceptions import (
    BindFailureError,
    ControlProtocolError,
    StorageOpenError,
    SupervisorError,
    WorkerFaultError,
)
from huddle.realtime import GOING_AWAY_CLOSE_CODE, ConnectionRegistry
from huddle.server import EmbeddedServer, ServerContext, create_app
from huddle.storage import ChatStore
from huddle.utils import get_fallback_logger

from ._state import WorkerLifecycle

_LISTEN_BACKLOG = 2048


@dataclass(frozen=True, slots=True)
class WorkerTimeouts:
    """Bounds, in seconds, for each lifecycle step.

    Attributes:
        listener_start: Wait for the server to signal it is ready, or to
            exit before getting there.
        websocket_close: Wait for live WebSocket connections to close.
        http_close: Wait for uvicorn to exit before forcing it.
        storage_close: Wait for the database to close before abandoning it.
        fault_budget: Total teardown budget after an internal fault.
    """

    listener_start: float = 10.0
    websocket_close: float = 2.0
    http_close: float = 3.0
    storage_close: float = 2.0
    fault_budget: float = 5.0


@dataclass(slots=True, eq=False)
class _Episode:
    """Resources of one running start/stop episode."""

    port: int
    store: ChatStore
    registry: ConnectionRegistry
    server: EmbeddedServer
    sock: socket.socket
    serve_scope: anyio.CancelScope = field(default_factory=anyio.CancelScope)
    served: anyio.Event = field(default_factory=anyio.Event)
    stopping: bool = False
    serve_error: BaseException | None = None


async def _wait_any(*events: anyio.Event) -> None:
    async with anyio.create_task_group() as tg:

        async def waiter(event: anyio.Event) -> None:
            await event.wait()
            tg.cancel_scope.cancel()

        for event in events:
            tg.start_soon(waiter, event)


def bind_listener(host: str, port: int) -> socket.socket:
    """Bind and listen on ``host:port``.

    Raises:
        OSError: If the address is in use or binding is denied.
    """
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        sock.listen(_LISTEN_BACKLOG)
        sock.setblocking(False)
    except OSError:
        sock.close()
        raise
    return sock


@final
class WorkerProcess:
    """Serves control messages and owns the chat service lifecycle."""

    __slots__ = (
        "_endpoint",
        "_episode",
        "_lifecycle",
        "_logger",
        "_task_group",
        "timeouts",
    )

    def __init__(
        self,
        endpoint: ControlEndpoint,
        *,
        logger: FilteringBoundLogger | None = None,
        timeouts: WorkerTimeouts | None = None,
    ) -> None:
        """Initialize the worker.

        Args:
            endpoint: The worker side of the control channel.
            logger: Logger for diagnostics. Uses the fallback logger if None.
            timeouts: Step bounds. Uses the defaults if None.
        """
        self._endpoint = endpoint
        self._logger: FilteringBoundLogger = logger or get_fallback_logger()
        self._lifecycle = WorkerLifecycle()
        self._episode: _Episode | None = None
        self._task_group: anyio.abc.TaskGroup | None = None
        self.timeouts = timeouts or WorkerTimeouts()

    @property
    def state(self) -> WorkerStatus:
        return self._lifecycle.current

    @property
    def port(self) -> int | None:
        return self._episode.port if self._episode is not None else None

    async def run(self) -> int:
        """Process control messages until the channel closes.

        End of the control stream while running is treated as a stop. An
        internal fault runs the ordered teardown within the fault budget.

        Returns:
            The process exit code: 0 after a clean end of stream, 1 after a
            fault.
        """
        try:
            async with anyio.create_task_group() as tg:
                self._task_group = tg
                async for message in self._endpoint:
                    await self._dispatch(message)
                self._logger.info("control_stream_closed", state=self.state.value)
                if self.state is WorkerStatus.RUNNING:
                    await self._stop()
                tg.cancel_scope.cancel()
        except Exception as e:  # noqa: BLE001
            self._logger.error("worker_fault", error=repr(e), state=self.state.value)
            with anyio.CancelScope(shield=True), anyio.move_on_after(
                self.timeouts.fault_budget
            ):
                await self.abort()
            return 1
        finally:
            self._task_group = None
        return 0

    async def abort(self) -> None:
        """Tear down whatever is running, without reporting status."""
        episode, self._episode = self._episode, None
        if episode is not None:
            await self._teardown(episode)

    async def _dispatch(self, message: ControlMessage) -> None:
        if isinstance(message, StartMessage):
            await self._start(message)
        elif isinstance(message, StopMessage):
            await self._stop()
        else:
            msg = f"Unexpected {message.type!r} message from host"
            raise ControlProtocolError(msg)

    async def _send(self, message: ControlMessage) -> None:
        try:
            await self._endpoint.send(message)
        except (anyio.BrokenResourceError, anyio.ClosedResourceError) as e:
            # Host is gone; end of stream on the read side follows
            self._logger.warning("control_send_failed", type=message.type, error=repr(e))

    async def _report(
        self,
        state: WorkerStatus,
        *,
        port: int | None = None,
        error: SupervisorError | None = None,
    ) -> None:
        await self._send(
            StatusMessage(
                state=state,
                port=port,
                error=str(error) if error is not None else None,
                code=error.code if error is not None else None,
            )
        )

    async def _fail(self, error: SupervisorError) -> None:
        _ = self._lifecycle.transition(WorkerStatus.FAILED)
        self._logger.error("start_failed", code=error.code.value, error=str(error))
        await self._report(WorkerStatus.FAILED, error=error)

    async def _start(self, message: StartMessage) -> None:
        _ = self._lifecycle.transition(WorkerStatus.STARTING)
        await self._report(WorkerStatus.STARTING, port=message.port)
        self._logger.info(
            "starting", port=message.port, storage_path=message.storage_path
        )

        try:
            store = await ChatStore.open(message.storage_path)
        except StorageOpenError as e:
            await self._fail(e)
            return

        try:
            sock = bind_listener(message.bind_host, message.port)
        except OSError as e:
            await store.aclose()
            await self._fail(
                BindFailureError(f"Cannot bind port {message.port}: {e}", cause=e)
            )
            return

        registry = ConnectionRegistry(logger=self._logger)
        context = ServerContext(
            store=store,
            registry=registry,
            gate=AuthGate(TokenSigner(message.secret)),
            logger=self._logger,
        )
        config = uvicorn.Config(
            app=create_app(context),
            lifespan="off",
            log_config=None,
            log_level="warning",
            access_log=False,
            timeout_graceful_shutdown=max(1, int(self.timeouts.http_close)),
        )
        episode = _Episode(
            port=message.port,
            store=store,
            registry=registry,
            server=EmbeddedServer(config),
            sock=sock,
        )
        self._episode = episode
        if self._task_group is None:
            msg = "Worker task group is not running"
            raise WorkerFaultError(msg)
        self._task_group.start_soon(self._serve, episode)

        with anyio.move_on_after(self.timeouts.listener_start):
            await _wait_any(episode.server.ready, episode.served)

        if not episode.server.started:
            self._episode = None
            await self._teardown(episode)
            cause = episode.serve_error
            await self._fail(
                BindFailureError(
                    f"Listener on port {message.port} did not start: {cause!r}",
                    cause=cause if isinstance(cause, Exception) else None,
                )
            )
            return

        _ = self._lifecycle.transition(WorkerStatus.RUNNING)
        self._logger.info("running", port=message.port)
        await self._report(WorkerStatus.RUNNING, port=message.port)
        await self._send(
            LogMessage(level=LogLevel.INFO, message=f"Listening on port {message.port}")
        )

    async def _serve(self, episode: _Episode) -> None:
        with episode.serve_scope:
            try:
                await episode.server.serve(sockets=[episode.sock])
            except (Exception, SystemExit) as e:  # noqa: BLE001
                episode.serve_error = e
            finally:
                episode.served.set()

        if episode is self._episode and not episode.stopping:
            if self.state is WorkerStatus.RUNNING:
                msg = f"Listener on port {episode.port} exited unexpectedly"
                raise WorkerFaultError(msg) from episode.serve_error

    async def _stop(self) -> None:
        if self.state is WorkerStatus.STOPPED:
            await self._report(WorkerStatus.STOPPED)
            return
        if self.state is WorkerStatus.FAILED:
            _ = self._lifecycle.transition(WorkerStatus.STOPPED)
            await self._report(WorkerStatus.STOPPED)
            return

        _ = self._lifecycle.transition(WorkerStatus.STOPPING)
        await self._report(WorkerStatus.STOPPING)
        episode, self._episode = self._episode, None
        if episode is not None:
            await self._teardown(episode)
        _ = self._lifecycle.transition(WorkerStatus.STOPPED)
        self._logger.info("stopped")
        await self._report(WorkerStatus.STOPPED)

    async def _teardown(self, episode: _Episode) -> None:
        episode.stopping = True
        log = self._logger.bind(port=episode.port)

        # 1. WebSocket connections
        episode.registry.shutdown(GOING_AWAY_CLOSE_CODE)
        with anyio.move_on_after(self.timeouts.websocket_close) as scope:
            await episode.registry.wait_closed()
        if scope.cancelled_caught:
            log.warning("websocket_close_timeout")

        # 2. HTTP listener
        episode.server.should_exit = True
        with anyio.move_on_after(self.timeouts.http_close) as scope:
            await episode.served.wait()
        if scope.cancelled_caught:
            log.warning("http_close_timeout")
            episode.server.force_exit = True
            episode.serve_scope.cancel()
            with anyio.move_on_after(self.timeouts.http_close):
                await episode.served.wait()
        episode.sock.close()

        # 3. Storage
        with anyio.move_on_after(self.timeouts.storage_close) as scope:
            await episode.store.aclose()
        if scope.cancelled_caught:
            log.warning("storage_close_abandoned", path=str(episode.store.path))
        log.debug("teardown_complete")
