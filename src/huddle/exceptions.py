"""huddle exceptions."""

from pathlib import Path  # noqa: TC003 - Used in runtime type annotations
from typing import ClassVar

from huddle.enums import ErrorCode


class HuddleError(Exception):
    """Base exception for huddle errors."""


# =============================================================================
# Configuration Exceptions
# =============================================================================


class ConfigError(HuddleError):
    """Base exception for configuration errors."""


class ConfigLoadError(ConfigError):
    """Raised when the settings file cannot be loaded or parsed."""

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        """Initialize with error message and optional location context."""
        super().__init__(message)
        self.path: Path | None = path


# =============================================================================
# Supervisor Exceptions
# =============================================================================


class SupervisorError(HuddleError):
    """Base exception for lifecycle errors reported to the host.

    Attributes:
        code: The error code surfaced in start/stop results.
        cause: The underlying exception that caused the failure.
    """

    code: ClassVar[ErrorCode] = ErrorCode.SPAWN_FAILURE

    def __init__(self, message: str, *, cause: Exception | None = None) -> None:
        """Initialize with error message and optional cause.

        Args:
            message: Human-readable error message.
            cause: The underlying exception that caused the failure.
        """
        super().__init__(message)
        self.cause: Exception | None = cause


class InvalidPortError(SupervisorError, ValueError):
    """Raised when a requested port is outside the allowed range.

    Attributes:
        port: The rejected port value.
    """

    code: ClassVar[ErrorCode] = ErrorCode.INVALID_PORT

    def __init__(self, message: str, *, port: object) -> None:
        """Initialize with error message and the rejected port.

        Args:
            message: Human-readable error message.
            port: The rejected port value.
        """
        super().__init__(message)
        self.port: object = port


class SpawnFailureError(SupervisorError):
    """Raised when the worker process cannot be created or never became ready."""

    code: ClassVar[ErrorCode] = ErrorCode.SPAWN_FAILURE


class BindFailureError(SupervisorError):
    """Raised when the listener cannot bind its port."""

    code: ClassVar[ErrorCode] = ErrorCode.BIND_FAILURE


class EscalatedShutdownError(SupervisorError):
    """Raised when a graceful stop exceeded its budget and was forced."""

    code: ClassVar[ErrorCode] = ErrorCode.ESCALATED_SHUTDOWN


class UnexpectedExitError(SupervisorError):
    """Raised when the worker terminated outside a supervisor-initiated stop.

    Attributes:
        exit_code: The worker's exit status, if known.
    """

    code: ClassVar[ErrorCode] = ErrorCode.UNEXPECTED_EXIT

    def __init__(self, message: str, *, exit_code: int | None = None) -> None:
        """Initialize with error message and exit status.

        Args:
            message: Human-readable error message.
            exit_code: The worker's exit status, if known.
        """
        super().__init__(message)
        self.exit_code: int | None = exit_code


class BusyError(SupervisorError):
    """Raised when an operation conflicts with one already in flight."""

    code: ClassVar[ErrorCode] = ErrorCode.BUSY


# =============================================================================
# Storage Exceptions
# =============================================================================


class StorageError(HuddleError):
    """Base exception for storage errors."""


class StorageOpenError(StorageError, SupervisorError):
    """Raised when the storage file cannot be opened or initialized.

    Attributes:
        path: The storage path that failed to open.
    """

    code: ClassVar[ErrorCode] = ErrorCode.STORAGE_OPEN_FAILURE

    def __init__(
        self,
        message: str,
        *,
        path: str | Path,
        cause: Exception | None = None,
    ) -> None:
        """Initialize with error message and storage context.

        Args:
            message: Human-readable error message.
            path: The storage path that failed to open.
            cause: The underlying exception that caused the failure.
        """
        super().__init__(message, cause=cause)
        self.path: str | Path = path


class StorageConflictError(StorageError):
    """Raised when a write collides with an existing unique row."""


# =============================================================================
# Control Channel Exceptions
# =============================================================================


class ControlProtocolError(HuddleError):
    """Raised when a control message is malformed or unexpected.

    Attributes:
        raw: The offending raw line, if available.
    """

    def __init__(self, message: str, *, raw: bytes | str | None = None) -> None:
        """Initialize with error message and the offending payload.

        Args:
            message: Human-readable error message.
            raw: The offending raw line, if available.
        """
        super().__init__(message)
        self.raw: bytes | str | None = raw


# =============================================================================
# Worker Exceptions
# =============================================================================


class WorkerFaultError(HuddleError):
    """Raised when the worker hits an unrecoverable internal fault."""


class InvalidTransitionError(WorkerFaultError):
    """Raised when the worker state machine is asked for an illegal move.

    Attributes:
        source: The current state.
        target: The requested state.
    """

    def __init__(self, message: str, *, source: str, target: str) -> None:
        """Initialize with error message and transition context.

        Args:
            message: Human-readable error message.
            source: The current state.
            target: The requested state.
        """
        super().__init__(message)
        self.source: str = source
        self.target: str = target


# =============================================================================
# Authentication Exceptions
# =============================================================================


class AuthError(HuddleError):
    """Base exception for credential verification failures."""

    code: ClassVar[ErrorCode] = ErrorCode.FORBIDDEN


class UnauthenticatedError(AuthError):
    """Raised when no usable credential was supplied."""

    code: ClassVar[ErrorCode] = ErrorCode.UNAUTHENTICATED


class ForbiddenError(AuthError):
    """Raised when a credential is present but invalid or expired."""

    code: ClassVar[ErrorCode] = ErrorCode.FORBIDDEN
