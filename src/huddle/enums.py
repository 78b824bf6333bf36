"""Enumeration types for huddle."""

from enum import StrEnum


class ErrorCode(StrEnum):
    """Failure classes surfaced to the host and to clients.

    Lifecycle codes travel inside StartResult/StopResult objects and inside
    worker status messages. Authentication codes are scoped to a single
    request or connection.
    """

    INVALID_PORT = "InvalidPort"
    SPAWN_FAILURE = "SpawnFailure"
    BIND_FAILURE = "BindFailure"
    STORAGE_OPEN_FAILURE = "StorageOpenFailure"
    UNAUTHENTICATED = "Unauthenticated"
    FORBIDDEN = "Forbidden"
    ESCALATED_SHUTDOWN = "EscalatedShutdown"
    UNEXPECTED_EXIT = "UnexpectedExit"
    BUSY = "Busy"


class LogLevel(StrEnum):
    """Log level threshold values.

    Values are ordered from most verbose (debug) to least verbose (error).
    """

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LogFormat(StrEnum):
    """Log output format values."""

    JSON = "json"
    TEXT = "text"
