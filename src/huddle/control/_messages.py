"""Control message schema shared by the supervisor and the worker.

Messages are pydantic models discriminated on ``type`` and travel as one
JSON object per line. Anything that fails validation is rejected at the
boundary with :class:`~huddle.exceptions.ControlProtocolError`.
"""

from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from huddle.enums import ErrorCode, LogLevel
from huddle.exceptions import ControlProtocolError

MIN_PORT = 1024
MAX_PORT = 65535


class WorkerStatus(StrEnum):
    """Lifecycle states reported by the worker in status messages."""

    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    FAILED = "failed"


class _ControlModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class StartMessage(_ControlModel):
    """Host to worker: open storage and bind the listener."""

    type: Literal["start"] = "start"
    port: Annotated[int, Field(ge=MIN_PORT, le=MAX_PORT, strict=True)]
    storage_path: str
    secret: str
    bind_host: str = "0.0.0.0"  # noqa: S104


class StopMessage(_ControlModel):
    """Host to worker: run the ordered teardown."""

    type: Literal["stop"] = "stop"


class StatusMessage(_ControlModel):
    """Worker to host: lifecycle state report."""

    type: Literal["status"] = "status"
    state: WorkerStatus
    port: int | None = None
    error: str | None = None
    code: ErrorCode | None = None


class LogMessage(_ControlModel):
    """Worker to host: a diagnostic line."""

    type: Literal["log"] = "log"
    level: LogLevel = LogLevel.INFO
    message: str


ControlMessage = Annotated[
    StartMessage | StopMessage | StatusMessage | LogMessage,
    Field(discriminator="type"),
]

_adapter: TypeAdapter[ControlMessage] = TypeAdapter(ControlMessage)


def encode_message(message: ControlMessage) -> bytes:
    """Serialize a control message to a single newline-terminated JSON line."""
    return message.model_dump_json(exclude_none=True).encode() + b"\n"


def decode_message(line: bytes | str) -> ControlMessage:
    """Parse one JSON line into a control message.

    Args:
        line: Raw line, with or without the trailing newline.

    Returns:
        The validated message.

    Raises:
        ControlProtocolError: If the line is not a valid control message.
    """
    data = line.strip()
    if not data:
        msg = "Empty control message"
        raise ControlProtocolError(msg, raw=line)
    try:
        return _adapter.validate_json(data)
    except ValidationError as e:
        msg = f"Malformed control message: {e.error_count()} validation error(s)"
        raise ControlProtocolError(msg, raw=line) from e
