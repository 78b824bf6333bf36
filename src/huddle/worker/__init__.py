"""Worker process: serves the chat app and answers control messages."""

from ._process import WorkerProcess, WorkerTimeouts, bind_listener
from ._runner import run_worker
from ._state import WorkerLifecycle

__all__ = [
    "WorkerLifecycle",
    "WorkerProcess",
    "WorkerTimeouts",
    "bind_listener",
    "run_worker",
]
