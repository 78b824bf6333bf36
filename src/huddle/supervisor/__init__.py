"""Supervisor package for the chat service lifecycle.

This package runs the chat worker as a child process and reconciles the
host's desired state with what the worker reports over the control channel.

Key Components:
    - ServiceConfig: Validated port and storage path
    - ServiceState: Lifecycle state enumeration
    - ServiceStatus: Read-only status snapshot
    - StartResult / StopResult / ConfigureResult: Operation outcomes
    - ServiceEvent: Lifecycle event records
    - OutputSink: Protocol for output consumption
    - ConcatenatedOutputSink: Console output implementation
    - SubprocessLauncher: Spawns workers as child processes
    - ServiceSupervisor: Single-slot lifecycle coordinator
    - create_control_router: FastAPI endpoint factory

Example:
    >>> from huddle.supervisor import ServiceSupervisor
    >>> async with ServiceSupervisor(port=3001, storage_path="chat.sqlite") as sv:
    ...     result = await sv.start(3001)
    ...     await sv.stop()
"""

from ._api import create_control_router
from ._launcher import SubprocessLauncher, SubprocessWorkerHandle, default_worker_command
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
from ._output import ConcatenatedOutputSink, LoggingOutputSink
from ._protocol import OutputSink, WorkerHandle, WorkerLauncher
from ._supervisor import DEFAULT_SERVICE_NAME, ServiceSupervisor

__all__ = [
    "DEFAULT_SERVICE_NAME",
    "ConcatenatedOutputSink",
    "ConfigureResult",
    "LoggingOutputSink",
    "OutputSink",
    "ServiceConfig",
    "ServiceEvent",
    "ServiceEventType",
    "ServiceState",
    "ServiceStatus",
    "ServiceSupervisor",
    "StartResult",
    "StopResult",
    "SubprocessLauncher",
    "SubprocessWorkerHandle",
    "WorkerHandle",
    "WorkerLauncher",
    "create_control_router",
    "default_worker_command",
]
