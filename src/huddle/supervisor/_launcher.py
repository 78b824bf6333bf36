"""Subprocess-backed worker launcher."""

import os
import subprocess
import sys
from collections.abc import AsyncIterator, Mapping, Sequence
from contextlib import suppress
from typing import final

import anyio
import anyio.abc
from anyio.streams.buffered import BufferedByteReceiveStream

from huddle.control import StreamControlEndpoint
from huddle.exceptions import SpawnFailureError

# Longest relayed stderr line
_MAX_STDERR_LINE = 1024 * 1024


def default_worker_command() -> tuple[str, ...]:
    """Return the command that runs a worker with the current interpreter."""
    return (sys.executable, "-m", "huddle", "worker")


@final
class SubprocessWorkerHandle:
    """A worker running as a child process with piped stdio."""

    __slots__ = ("_channel", "_process")

    def __init__(self, process: anyio.abc.Process) -> None:
        self._process = process
        self._channel = StreamControlEndpoint(process.stdin, process.stdout)

    @property
    def pid(self) -> int | None:
        return self._process.pid

    @property
    def channel(self) -> StreamControlEndpoint:
        return self._channel

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    async def stderr_lines(self) -> AsyncIterator[str]:
        if self._process.stderr is None:
            return
        reader = BufferedByteReceiveStream(self._process.stderr)
        while True:
            try:
                raw = await reader.receive_until(b"\n", _MAX_STDERR_LINE)
            except anyio.IncompleteRead:
                remainder = reader.buffer
                if remainder:
                    yield remainder.decode(errors="replace").rstrip("\r")
                return
            except anyio.DelimiterNotFound:
                raw = await reader.receive_exactly(len(reader.buffer))
            except (anyio.ClosedResourceError, anyio.BrokenResourceError):
                return
            yield raw.decode(errors="replace").rstrip("\r")

    async def wait(self) -> int:
        return await self._process.wait()

    def kill(self) -> None:
        with suppress(ProcessLookupError):
            self._process.kill()


@final
class SubprocessLauncher:
    """Spawns workers as child processes of the host."""

    __slots__ = ("command", "cwd", "env")

    def __init__(
        self,
        command: Sequence[str] | None = None,
        *,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
    ) -> None:
        """Initialize the launcher.

        Args:
            command: Worker command line. Defaults to ``python -m huddle worker``.
            env: Extra environment variables for the worker.
            cwd: Working directory for the worker.
        """
        self.command: tuple[str, ...] = tuple(command or default_worker_command())
        self.env: dict[str, str] = dict(env or {})
        self.cwd = cwd

    async def launch(self) -> SubprocessWorkerHandle:
        try:
            process = await anyio.open_process(
                self.command,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=self.cwd,
                env={**os.environ, **self.env} if self.env else None,
                start_new_session=True,
            )
        except OSError as e:
            msg = f"Failed to spawn worker {' '.join(self.command)!r}: {e}"
            raise SpawnFailureError(msg, cause=e) from e
        return SubprocessWorkerHandle(process)
