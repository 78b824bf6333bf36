"""Host-side supervisor for the chat worker.

This module provides the ServiceSupervisor class, which reconciles the
host's desired service config with the one worker process that actually
runs it. Start and stop are serialized; every outcome is returned as a
structured result rather than raised.
"""

import secrets
from contextlib import AsyncExitStack
from dataclasses import dataclass, field, replace
from functools import partial
from types import TracebackType  # noqa: TC003
from typing import Literal, Self, final

import anyio
import anyio.abc
import pendulum
from structlog.typing import FilteringBoundLogger  # noqa: TC002

from huddle.config import HostSettings, SettingsStore  # noqa: TC001
from huddle.control import (
    ControlMessage,
    LogMessage,
    StartMessage,
    StatusMessage,
    StopMessage,
    WorkerStatus,
)
from huddle.enums import ErrorCode
from huddle.exceptions import (
    BusyError,
    ConfigError,
    ControlProtocolError,
    EscalatedShutdownError,
    InvalidPortError,
    SpawnFailureError,
    SupervisorError,
    UnexpectedExitError,
)
from huddle.utils import get_fallback_logger

from ._launcher import SubprocessLauncher
from ._models import (
    ConfigureResult,
    ServiceConfig,
    ServiceEvent,
    ServiceEventType,
    ServiceState,
    ServiceStatus,
    StartResult,
    StopResult,
)
from ._output import LoggingOutputSink
from ._protocol import OutputSink, WorkerHandle, WorkerLauncher  # noqa: TC001

DEFAULT_SERVICE_NAME = "chat"

# Wait for a worker to exit after its channel closed or it was killed
_REAP_GRACE = 2.0


def _get_timestamp() -> str:
    """Get current timestamp in ISO 8601 format."""
    return pendulum.now("UTC").to_iso8601_string()


async def _wait_any(*events: anyio.Event) -> None:
    """Return as soon as any of ``events`` is set."""
    async with anyio.create_task_group() as tg:

        async def waiter(event: anyio.Event) -> None:
            await event.wait()
            tg.cancel_scope.cancel()

        for event in events:
            tg.start_soon(waiter, event)


@dataclass(slots=True, eq=False)
class _WorkerSession:
    """One spawned worker and what has been observed about it."""

    handle: WorkerHandle
    config: ServiceConfig
    running: anyio.Event = field(default_factory=anyio.Event)
    failed: anyio.Event = field(default_factory=anyio.Event)
    stopped: anyio.Event = field(default_factory=anyio.Event)
    exited: anyio.Event = field(default_factory=anyio.Event)
    expected_exit: bool = False
    failure: StatusMessage | None = None
    protocol_error: str | None = None
    exit_code: int | None = None


@final
class ServiceSupervisor:
    """Owns the lifecycle of the single chat service slot.

    Must be entered as an async context manager: the context owns the task
    group that watches worker processes, and leaving it stops the service.

    Start and stop share a single-flight lock. A start issued while another
    start is running waits for it; a stop issued while any start is pending
    is rejected with ``Busy``.

    Example:
        >>> async with ServiceSupervisor(port=3001, storage_path="chat.sqlite") as sv:
        ...     result = await sv.start(3001)
        ...     result.success
        True
    """

    __slots__ = (
        "_code",
        "_desired",
        "_error",
        "_exit_stack",
        "_launcher",
        "_lock",
        "_logger",
        "_output_sink",
        "_pending_starts",
        "_secret",
        "_session",
        "_settings_store",
        "_state",
        "_task_group",
        "bind_host",
        "name",
        "settle_interval",
        "start_timeout",
        "stop_timeout",
    )

    def __init__(  # noqa: PLR0913
        self,
        *,
        port: int,
        storage_path: str,
        launcher: WorkerLauncher | None = None,
        settings_store: SettingsStore | None = None,
        output_sink: OutputSink | None = None,
        logger: FilteringBoundLogger | None = None,
        secret: str | None = None,
        bind_host: str = "0.0.0.0",  # noqa: S104
        start_timeout: float = 15.0,
        stop_timeout: float = 5.0,
        settle_interval: float = 0.5,
        name: str = DEFAULT_SERVICE_NAME,
    ) -> None:
        """Initialize the supervisor.

        Args:
            port: Initial desired port.
            storage_path: Initial desired storage path.
            launcher: Spawns workers. Uses SubprocessLauncher if None.
            settings_store: Persists the desired config on start and configure.
            output_sink: Receives worker output and lifecycle events. Logs them
                if None.
            logger: Host logger. Uses the fallback logger if None.
            secret: Token signing secret handed to every worker. Random per
                supervisor if None.
            bind_host: Address workers bind their listener on.
            start_timeout: Seconds to wait for a spawned worker to run.
            stop_timeout: Seconds to wait for a stop acknowledgement before
                killing the worker.
            settle_interval: Pause between stopping and respawning on a port
                change.
            name: Service name used in events and output.

        Raises:
            InvalidPortError: If ``port`` is out of range.
        """
        self.name = name
        self.bind_host = bind_host
        self.start_timeout = start_timeout
        self.stop_timeout = stop_timeout
        self.settle_interval = settle_interval
        self._logger: FilteringBoundLogger = logger or get_fallback_logger()
        self._launcher: WorkerLauncher = launcher or SubprocessLauncher()
        self._settings_store = settings_store
        self._output_sink: OutputSink = output_sink or LoggingOutputSink(self._logger)
        self._secret = secret or secrets.token_urlsafe(32)
        self._desired = ServiceConfig.create(port, storage_path)
        self._state = ServiceState.STOPPED
        self._session: _WorkerSession | None = None
        self._error: str | None = None
        self._code: ErrorCode | None = None
        self._lock = anyio.Lock()
        self._pending_starts = 0
        self._task_group: anyio.abc.TaskGroup | None = None
        self._exit_stack: AsyncExitStack | None = None

    @classmethod
    def from_settings(
        cls,
        settings: HostSettings,
        *,
        settings_store: SettingsStore | None = None,
        launcher: WorkerLauncher | None = None,
        output_sink: OutputSink | None = None,
        logger: FilteringBoundLogger | None = None,
    ) -> Self:
        """Build a supervisor from host settings."""
        if launcher is None:
            launcher = SubprocessLauncher(
                env={"HUDDLE_LOG_LEVEL": settings.logging.level.value}
            )
        return cls(
            port=settings.port,
            storage_path=settings.storage_path,
            launcher=launcher,
            settings_store=settings_store,
            output_sink=output_sink,
            logger=logger,
            secret=settings.secret,
            bind_host=settings.bind_host,
            start_timeout=settings.start_timeout,
            stop_timeout=settings.stop_timeout,
            settle_interval=settings.settle_interval,
        )

    async def __aenter__(self) -> Self:
        async with AsyncExitStack() as stack:
            self._task_group = await stack.enter_async_context(
                anyio.create_task_group()
            )
            stack.push_async_callback(self._shutdown)
            self._exit_stack = stack.pop_all()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool | None:
        stack, self._exit_stack = self._exit_stack, None
        if stack is None:
            return None
        try:
            return await stack.__aexit__(exc_type, exc_value, traceback)
        finally:
            self._task_group = None

    async def _shutdown(self) -> None:
        with anyio.CancelScope(shield=True):
            async with self._lock:
                _ = await self._stop_locked()
        if self._task_group is not None:
            self._task_group.cancel_scope.cancel()

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    def status(self) -> ServiceStatus:
        """Return a snapshot of supervisor-local state without blocking."""
        session = self._session
        config = session.config if session is not None else self._desired
        return ServiceStatus(
            state=self._state,
            port=config.port,
            storage_path=config.storage_path,
            pid=session.handle.pid if session is not None else None,
            error=self._error,
            code=self._code,
        )

    async def start(self, port: object, storage_path: str | None = None) -> StartResult:
        """Run the service on ``port``.

        Args:
            port: Listening port, 1024 to 65535.
            storage_path: Chat database path. Defaults to the desired path.

        Returns:
            The outcome. ``success`` is True once the worker reports running.
        """
        try:
            config = ServiceConfig.create(
                port, storage_path if storage_path is not None else self._desired.storage_path
            )
        except InvalidPortError as e:
            self._logger.warning("start_rejected", port=repr(port), error=str(e))
            return StartResult(
                success=False, state=self._state, error=e.code, reason=str(e)
            )

        self._pending_starts += 1
        try:
            async with self._lock:
                return await self._start_locked(config)
        finally:
            self._pending_starts -= 1

    async def stop(self) -> StopResult:
        """Stop the service.

        Returns:
            The outcome. ``success`` is False with ``EscalatedShutdown`` when
            the worker had to be killed, or ``Busy`` when a start is pending.
        """
        if self._pending_starts:
            error = BusyError("A start is in progress")
            self._logger.warning("stop_rejected", error=str(error))
            return StopResult(
                success=False, state=self._state, error=error.code, reason=str(error)
            )
        async with self._lock:
            return await self._stop_locked()

    async def configure(self, storage_path: str) -> ConfigureResult:
        """Change the desired storage path.

        The running episode keeps its path; the change applies on the next
        start.
        """
        self._desired = replace(self._desired, storage_path=storage_path)
        await self._persist(self._desired)
        session = self._session
        restart_required = (
            session is not None
            and self._state is ServiceState.RUNNING
            and session.config.storage_path != storage_path
        )
        self._logger.info(
            "storage_path_configured",
            storage_path=storage_path,
            restart_required=restart_required,
        )
        return ConfigureResult(
            storage_path=storage_path, restart_required=restart_required
        )

    # -------------------------------------------------------------------------
    # Start
    # -------------------------------------------------------------------------

    async def _start_locked(self, config: ServiceConfig) -> StartResult:
        self._desired = config
        await self._persist(config)

        session = self._session
        if session is not None and self._state is ServiceState.RUNNING:
            if session.config.port == config.port:
                return StartResult(
                    success=True, state=ServiceState.RUNNING, port=config.port
                )
            self._logger.info(
                "port_change", from_port=session.config.port, to_port=config.port
            )
            _ = await self._stop_locked()
            await anyio.sleep(self.settle_interval)
        elif session is not None:
            self._session = None
            await self._dispose(session)

        return await self._spawn(config)

    async def _spawn(self, config: ServiceConfig) -> StartResult:
        if self._task_group is None:
            msg = "ServiceSupervisor must be entered with 'async with' before use"
            raise RuntimeError(msg)

        self._state = ServiceState.STARTING
        self._error = None
        self._code = None
        log = self._logger.bind(port=config.port)

        try:
            handle = await self._launcher.launch()
        except SpawnFailureError as e:
            return await self._start_failed(None, e)

        session = _WorkerSession(handle=handle, config=config)
        self._session = session
        self._task_group.start_soon(self._watch, session)
        log.info("worker_spawned", pid=handle.pid, storage_path=config.storage_path)
        await self._emit(
            ServiceEventType.STARTED,
            pid=handle.pid,
            message=f"Starting on port {config.port}",
        )

        await self._send(
            session,
            StartMessage(
                port=config.port,
                storage_path=config.storage_path,
                secret=self._secret,
                bind_host=self.bind_host,
            ),
        )

        with anyio.move_on_after(self.start_timeout):
            await _wait_any(session.running, session.failed, session.exited)

        if session.running.is_set():
            self._state = ServiceState.RUNNING
            log.info("service_running", pid=handle.pid)
            return StartResult(success=True, state=ServiceState.RUNNING, port=config.port)

        error: SupervisorError
        if session.failed.is_set() and session.failure is not None:
            error = SupervisorError(session.failure.error or "Worker failed to start")
            code = session.failure.code or ErrorCode.SPAWN_FAILURE
            return await self._start_failed(session, error, code=code)
        if session.exited.is_set():
            reason = session.protocol_error or (
                f"Worker exited with code {session.exit_code} before running"
            )
            error = UnexpectedExitError(reason, exit_code=session.exit_code)
            return await self._start_failed(session, error)
        error = SpawnFailureError(
            f"Worker did not report running within {self.start_timeout}s"
        )
        return await self._start_failed(session, error)

    async def _start_failed(
        self,
        session: _WorkerSession | None,
        error: SupervisorError,
        *,
        code: ErrorCode | None = None,
    ) -> StartResult:
        code = code or error.code
        pid: int | None = None
        exit_code: int | None = None
        if session is not None:
            pid = session.handle.pid
            if self._session is session:
                self._session = None
            await self._dispose(session, graceful=not isinstance(error, SpawnFailureError))
            exit_code = session.exit_code

        self._state = ServiceState.FAILED
        self._error = str(error)
        self._code = code
        self._logger.error("start_failed", code=code.value, error=str(error), pid=pid)
        event_type = (
            ServiceEventType.CRASHED
            if code is ErrorCode.UNEXPECTED_EXIT
            else ServiceEventType.FAILED
        )
        await self._emit(event_type, pid=pid, exit_code=exit_code, message=str(error))
        return StartResult(
            success=False, state=ServiceState.FAILED, error=code, reason=str(error)
        )

    # -------------------------------------------------------------------------
    # Stop
    # -------------------------------------------------------------------------

    async def _stop_locked(self) -> StopResult:
        session, self._session = self._session, None
        if session is None:
            self._state = ServiceState.STOPPED
            self._error = None
            self._code = None
            return StopResult(success=True, state=ServiceState.STOPPED)

        self._state = ServiceState.STOPPING
        session.expected_exit = True
        pid = session.handle.pid
        await self._send(session, StopMessage())

        with anyio.move_on_after(self.stop_timeout):
            await _wait_any(session.stopped, session.exited)

        if session.stopped.is_set() or session.exited.is_set():
            await self._dispose(session)
            self._state = ServiceState.STOPPED
            self._error = None
            self._code = None
            self._logger.info("service_stopped", pid=pid)
            await self._emit(
                ServiceEventType.STOPPED,
                pid=pid,
                exit_code=session.exit_code,
                message="Stopped by request",
            )
            return StopResult(success=True, state=ServiceState.STOPPED)

        await self._dispose(session, graceful=False)
        error = EscalatedShutdownError(
            f"Worker did not acknowledge stop within {self.stop_timeout}s and was killed"
        )
        self._state = ServiceState.STOPPED
        self._error = str(error)
        self._code = error.code
        self._logger.warning("stop_escalated", pid=pid, timeout=self.stop_timeout)
        await self._emit(
            ServiceEventType.ESCALATED,
            pid=pid,
            exit_code=session.exit_code,
            message=str(error),
        )
        return StopResult(
            success=False,
            state=ServiceState.STOPPED,
            error=error.code,
            reason=str(error),
        )

    async def _dispose(self, session: _WorkerSession, *, graceful: bool = True) -> None:
        """Close the worker's channel and reap it, killing it if it lingers."""
        session.expected_exit = True
        if graceful:
            await session.handle.channel.aclose()
            with anyio.move_on_after(_REAP_GRACE):
                await session.exited.wait()
        if not session.exited.is_set():
            session.handle.kill()
            with anyio.move_on_after(_REAP_GRACE):
                await session.exited.wait()
            await session.handle.channel.aclose()
        if not session.exited.is_set():
            self._logger.warning("worker_not_reaped", pid=session.handle.pid)

    # -------------------------------------------------------------------------
    # Worker observation
    # -------------------------------------------------------------------------

    async def _watch(self, session: _WorkerSession) -> None:
        async with anyio.create_task_group() as tg:
            tg.start_soon(self._pump_stderr, session)
            await self._pump_control(session)
        session.exit_code = await session.handle.wait()
        session.exited.set()
        self._logger.debug(
            "worker_exited", pid=session.handle.pid, exit_code=session.exit_code
        )
        await self._on_exit(session)

    async def _pump_control(self, session: _WorkerSession) -> None:
        try:
            async for message in session.handle.channel:
                await self._on_message(session, message)
        except ControlProtocolError as e:
            session.protocol_error = f"Control protocol violation: {e}"
            self._logger.error(
                "control_protocol_error", pid=session.handle.pid, error=str(e)
            )
            session.handle.kill()

    async def _pump_stderr(self, session: _WorkerSession) -> None:
        async for line in session.handle.stderr_lines():
            await self._write_line(session, "stderr", line)

    async def _on_message(self, session: _WorkerSession, message: ControlMessage) -> None:
        if isinstance(message, StatusMessage):
            self._logger.debug(
                "worker_status", pid=session.handle.pid, state=message.state.value
            )
            if message.state is WorkerStatus.RUNNING:
                session.running.set()
            elif message.state is WorkerStatus.FAILED:
                session.failure = message
                session.failed.set()
            elif message.state is WorkerStatus.STOPPED:
                session.stopped.set()
        elif isinstance(message, LogMessage):
            await self._write_line(session, "stdout", message.message)
        else:
            msg = f"Unexpected {message.type!r} message from worker"
            raise ControlProtocolError(msg)

    async def _on_exit(self, session: _WorkerSession) -> None:
        if session.expected_exit or session is not self._session:
            return
        if self._state is not ServiceState.RUNNING:
            # A start in flight observes the exit itself
            return

        error = UnexpectedExitError(
            session.protocol_error
            or f"Worker exited unexpectedly with code {session.exit_code}",
            exit_code=session.exit_code,
        )
        self._session = None
        self._state = ServiceState.FAILED
        self._error = str(error)
        self._code = error.code
        self._logger.error(
            "worker_crashed", pid=session.handle.pid, exit_code=session.exit_code
        )
        await session.handle.channel.aclose()
        await self._emit(
            ServiceEventType.CRASHED,
            pid=session.handle.pid,
            exit_code=session.exit_code,
            message=str(error),
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _send(self, session: _WorkerSession, message: ControlMessage) -> None:
        try:
            await session.handle.channel.send(message)
        except (anyio.BrokenResourceError, anyio.ClosedResourceError) as e:
            # Worker is gone; its exit is observed by the watcher
            self._logger.warning(
                "control_send_failed",
                pid=session.handle.pid,
                type=message.type,
                error=repr(e),
            )

    async def _persist(self, config: ServiceConfig) -> None:
        if self._settings_store is None:
            return
        try:
            _ = await anyio.to_thread.run_sync(
                partial(
                    self._settings_store.update,
                    port=config.port,
                    storage_path=config.storage_path,
                )
            )
        except (ConfigError, OSError) as e:
            self._logger.warning("settings_persist_failed", error=str(e))

    async def _emit(
        self,
        event_type: ServiceEventType,
        *,
        pid: int | None = None,
        exit_code: int | None = None,
        message: str | None = None,
    ) -> None:
        event = ServiceEvent(
            service_name=self.name,
            event_type=event_type,
            timestamp=_get_timestamp(),
            pid=pid,
            exit_code=exit_code,
            message=message,
        )
        try:  # noqa: SIM105
            await self._output_sink.write_event(self.name, event)
        except Exception:  # noqa: BLE001, S110
            # Output sink errors should not affect the service
            pass

    async def _write_line(
        self,
        session: _WorkerSession,
        stream: Literal["stdout", "stderr"],
        line: str,
    ) -> None:
        try:  # noqa: SIM105
            await self._output_sink.write_line(
                self.name, session.handle.pid or 0, stream, line
            )
        except Exception:  # noqa: BLE001, S110
            # Output sink errors should not affect the service
            pass
