"""Fake worker processes for supervisor tests.

A FakeWorker speaks the control protocol over in-memory streams and follows
a scripted behavior, so lifecycle paths can be exercised without spawning
processes.
"""

from collections.abc import AsyncIterator, Callable
from enum import StrEnum
from typing import Literal

import anyio
import anyio.abc

from huddle.control import (
    ControlMessage,
    LogMessage,
    StartMessage,
    StatusMessage,
    StopMessage,
    StreamControlEndpoint,
    WorkerStatus,
)
from huddle.enums import ErrorCode
from huddle.exceptions import SpawnFailureError
from huddle.supervisor import ServiceEvent


class Behavior(StrEnum):
    OK = "ok"
    BIND_FAILURE = "bind_failure"
    HANG_ON_STOP = "hang_on_stop"
    EXIT_ON_START = "exit_on_start"
    SILENT = "silent"
    GARBAGE = "garbage"
    SPAWN_ERROR = "spawn_error"


class FakeWorker:
    """In-memory stand-in for a worker process."""

    def __init__(self, behavior: Behavior, pid: int) -> None:
        self.behavior = behavior
        self._pid = pid
        host_send, worker_receive = anyio.create_memory_object_stream[bytes](64)
        self._raw_send, host_receive = anyio.create_memory_object_stream[bytes](64)
        self._host = StreamControlEndpoint(host_send, host_receive)
        self._worker = StreamControlEndpoint(self._raw_send, worker_receive)
        self.received: list[ControlMessage] = []
        self.exit_code: int | None = None
        self.killed = False
        self._exited = anyio.Event()
        self._scope = anyio.CancelScope()

    @property
    def pid(self) -> int:
        return self._pid

    @property
    def channel(self) -> StreamControlEndpoint:
        return self._host

    async def stderr_lines(self) -> AsyncIterator[str]:
        yield f"worker {self._pid} booting"
        await self._exited.wait()

    async def wait(self) -> int:
        await self._exited.wait()
        return self.exit_code if self.exit_code is not None else 0

    def kill(self) -> None:
        self.killed = True
        self.exit(-9)

    def exit(self, code: int) -> None:
        """Terminate the fake process with ``code``."""
        if self.exit_code is None:
            self.exit_code = code
        self._scope.cancel()

    async def run(self) -> None:
        with self._scope:
            try:
                async for message in self._worker:
                    self.received.append(message)
                    await self._handle(message)
            except (anyio.BrokenResourceError, anyio.ClosedResourceError):
                pass
        await self._worker.aclose()
        if self.exit_code is None:
            self.exit_code = 0
        self._exited.set()

    async def _handle(self, message: ControlMessage) -> None:
        if isinstance(message, StartMessage):
            await self._on_start(message)
        elif isinstance(message, StopMessage) and self.behavior is not Behavior.HANG_ON_STOP:
            await self._worker.send(StatusMessage(state=WorkerStatus.STOPPING))
            await self._worker.send(StatusMessage(state=WorkerStatus.STOPPED))

    async def _on_start(self, message: StartMessage) -> None:
        if self.behavior is Behavior.SILENT:
            return
        if self.behavior is Behavior.EXIT_ON_START:
            self.exit(3)
            return
        if self.behavior is Behavior.GARBAGE:
            await self._raw_send.send(b"this is not json\n")
            return
        await self._worker.send(StatusMessage(state=WorkerStatus.STARTING, port=message.port))
        if self.behavior is Behavior.BIND_FAILURE:
            await self._worker.send(
                StatusMessage(
                    state=WorkerStatus.FAILED,
                    error=f"Cannot bind port {message.port}",
                    code=ErrorCode.BIND_FAILURE,
                )
            )
            return
        await self._worker.send(StatusMessage(state=WorkerStatus.RUNNING, port=message.port))
        await self._worker.send(LogMessage(message=f"Listening on port {message.port}"))


class FakeLauncher:
    """Launches FakeWorkers into a task group, one behavior per launch."""

    def __init__(self, default: Behavior = Behavior.OK) -> None:
        self.default = default
        self.queue: list[Behavior] = []
        self.workers: list[FakeWorker] = []
        self.task_group: anyio.abc.TaskGroup | None = None

    @property
    def launches(self) -> int:
        return len(self.workers)

    async def launch(self) -> FakeWorker:
        behavior = self.queue.pop(0) if self.queue else self.default
        if behavior is Behavior.SPAWN_ERROR:
            msg = "Cannot spawn worker: no such file"
            raise SpawnFailureError(msg)
        if self.task_group is None:
            msg = "FakeLauncher needs a task group"
            raise RuntimeError(msg)
        worker = FakeWorker(behavior, pid=1000 + len(self.workers))
        self.workers.append(worker)
        self.task_group.start_soon(worker.run)
        return worker


class RecordingSink:
    """Output sink that keeps everything it is given."""

    def __init__(self) -> None:
        self.lines: list[tuple[str, int, Literal["stdout", "stderr"], str]] = []
        self.events: list[ServiceEvent] = []

    async def write_line(
        self, service_name: str, pid: int, stream: Literal["stdout", "stderr"], line: str
    ) -> None:
        self.lines.append((service_name, pid, stream, line))

    async def write_event(self, service_name: str, event: ServiceEvent) -> None:
        self.events.append(event)




async def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    """Poll ``predicate`` until it holds, failing after ``timeout`` seconds."""
    with anyio.fail_after(timeout):
        while not predicate():
            await anyio.sleep(0.01)
