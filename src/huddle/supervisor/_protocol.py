"""Protocol definitions for the supervisor.

This module defines the interfaces that decouple the supervisor core from
process management and output implementations:
- OutputSink: Consumes worker output lines and lifecycle events
- WorkerHandle: One spawned worker and its control channel
- WorkerLauncher: Spawns workers
"""

from collections.abc import AsyncIterator
from typing import Literal, Protocol, runtime_checkable

from huddle.control import ControlEndpoint  # noqa: TC001

from ._models import ServiceEvent  # noqa: TC001


@runtime_checkable
class OutputSink(Protocol):
    """Protocol for consuming worker output lines and lifecycle events."""

    async def write_line(
        self,
        service_name: str,
        pid: int,
        stream: Literal["stdout", "stderr"],
        line: str,
    ) -> None:
        """Write a line of worker output.

        Args:
            service_name: Name of the service that produced the output.
            pid: Process ID of the worker.
            stream: Which output stream the line came from.
            line: The output line (without trailing newline).
        """
        ...

    async def write_event(
        self,
        service_name: str,
        event: ServiceEvent,
    ) -> None:
        """Write a service lifecycle event.

        Args:
            service_name: Name of the service that generated the event.
            event: The lifecycle event to record.
        """
        ...


@runtime_checkable
class WorkerHandle(Protocol):
    """A spawned worker process."""

    @property
    def pid(self) -> int | None:
        """Return the worker's process ID."""
        ...

    @property
    def channel(self) -> ControlEndpoint:
        """Return the host side of the control channel."""
        ...

    def stderr_lines(self) -> AsyncIterator[str]:
        """Iterate over the worker's diagnostic output, one line at a time."""
        ...

    async def wait(self) -> int:
        """Wait for the worker to exit and return its exit code."""
        ...

    def kill(self) -> None:
        """Forcefully terminate the worker (SIGKILL). No-op if it already exited."""
        ...


@runtime_checkable
class WorkerLauncher(Protocol):
    """Spawns worker processes."""

    async def launch(self) -> WorkerHandle:
        """Spawn a worker.

        Raises:
            SpawnFailureError: If the process cannot be created.
        """
        ...
