"""Data models for the supervisor.

This module defines the core data types for service lifecycle management:
- ServiceState: Lifecycle states of the single service slot
- ServiceEventType / ServiceEvent: Lifecycle event records
- ServiceConfig: Validated port and storage path of one episode
- ServiceStatus: Read-only status snapshot
- StartResult / StopResult / ConfigureResult: Structured operation outcomes
"""

from dataclasses import asdict, dataclass
from enum import StrEnum
from typing import Self

from huddle.control import MAX_PORT, MIN_PORT
from huddle.enums import ErrorCode
from huddle.exceptions import InvalidPortError


class ServiceState(StrEnum):
    """Service lifecycle states.

    - STOPPED: No worker is running
    - STARTING: A worker has been spawned and asked to start
    - RUNNING: The worker reported it is serving
    - STOPPING: The worker has been asked to stop
    - FAILED: The last start failed or the worker exited unexpectedly
    """

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    FAILED = "failed"


class ServiceEventType(StrEnum):
    """Types of service lifecycle events.

    - STARTED: Worker process has been spawned
    - STOPPED: Worker acknowledged a stop or exited during one
    - CRASHED: Worker exited outside a supervisor-initiated stop
    - FAILED: A start did not reach running
    - ESCALATED: A stop exceeded its budget and the worker was killed
    """

    STARTED = "started"
    STOPPED = "stopped"
    CRASHED = "crashed"
    FAILED = "failed"
    ESCALATED = "escalated"


@dataclass(frozen=True, slots=True)
class ServiceEvent:
    """Immutable service lifecycle event.

    Attributes:
        service_name: Name of the service that generated the event.
        event_type: Type of lifecycle event.
        timestamp: ISO 8601 formatted timestamp.
        pid: Worker process ID if applicable.
        exit_code: Exit code if the worker terminated.
        message: Optional human-readable message.
    """

    service_name: str
    event_type: ServiceEventType
    timestamp: str
    pid: int | None = None
    exit_code: int | None = None
    message: str | None = None


@dataclass(frozen=True, slots=True)
class ServiceConfig:
    """Port and storage path of one running episode.

    Attributes:
        port: Listening port, 1024 to 65535.
        storage_path: Path of the chat database file.
    """

    port: int
    storage_path: str

    @classmethod
    def create(cls, port: object, storage_path: str) -> Self:
        """Validate and build a config.

        Raises:
            InvalidPortError: If ``port`` is not an integer in range.
        """
        if isinstance(port, bool) or not isinstance(port, int):
            msg = f"Port must be an integer, got {port!r}"
            raise InvalidPortError(msg, port=port)
        if not MIN_PORT <= port <= MAX_PORT:
            msg = f"Port must be between {MIN_PORT} and {MAX_PORT}, got {port}"
            raise InvalidPortError(msg, port=port)
        return cls(port=port, storage_path=storage_path)


@dataclass(frozen=True, slots=True)
class ServiceStatus:
    """Snapshot of supervisor-local state.

    Attributes:
        state: Current service state.
        port: Port of the running episode, or the desired port otherwise.
        storage_path: Storage path of the running episode, or the desired one.
        pid: Worker process ID, if a worker exists.
        error: Reason of the last failure, if any.
        code: Error code of the last failure, if any.
    """

    state: ServiceState
    port: int | None = None
    storage_path: str | None = None
    pid: int | None = None
    error: str | None = None
    code: ErrorCode | None = None

    def to_dict(self) -> dict[str, object]:
        return {key: value for key, value in asdict(self).items() if value is not None}


@dataclass(frozen=True, slots=True)
class StartResult:
    """Outcome of a start request.

    Attributes:
        success: True if the service is running on the requested port.
        state: Service state after the request.
        port: The running port, on success.
        error: Failure class, on failure.
        reason: Human-readable failure reason, on failure.
    """

    success: bool
    state: ServiceState
    port: int | None = None
    error: ErrorCode | None = None
    reason: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {key: value for key, value in asdict(self).items() if value is not None}


@dataclass(frozen=True, slots=True)
class StopResult:
    """Outcome of a stop request.

    Attributes:
        success: True if the worker acknowledged the stop or had already exited.
        state: Service state after the request.
        error: Failure class, on failure.
        reason: Human-readable failure reason, on failure.
    """

    success: bool
    state: ServiceState
    error: ErrorCode | None = None
    reason: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {key: value for key, value in asdict(self).items() if value is not None}


@dataclass(frozen=True, slots=True)
class ConfigureResult:
    """Outcome of a storage path change.

    Attributes:
        storage_path: The new desired storage path.
        restart_required: True if a running episode still uses another path.
    """

    storage_path: str
    restart_required: bool

    def to_dict(self) -> dict[str, object]:
        return asdict(self)
