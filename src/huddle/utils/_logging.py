"""Logging utilities for huddle.

This module provides standalone structlog logger factories that write
JSON-formatted or text-formatted logs either to huddle log files (host side)
or to stderr (worker side, where stdout carries the control channel). Each
logger is self-contained and does not modify global structlog configuration.
"""

import logging
import sys
from functools import cache
from logging.handlers import RotatingFileHandler
from os import getenv
from pathlib import Path
from typing import TYPE_CHECKING, Literal, TextIO, cast

import structlog

from ._paths import get_huddle_host_log_file

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

LogFormatType = Literal["json", "text"]


def _get_log_level() -> int:
    """Get the log level from environment variables.

    Checks HUDDLE_DEBUG first (sets DEBUG if present), then HUDDLE_LOG_LEVEL.
    Defaults to INFO if neither is set.

    Returns:
        The logging level as an integer.
    """
    if getenv("HUDDLE_DEBUG", None):
        return logging.DEBUG

    log_levels = logging.getLevelNamesMapping()
    return log_levels.get(getenv("HUDDLE_LOG_LEVEL", "info").upper(), logging.INFO)


def _log_level_from_string(level: str, *, respect_env: bool = False) -> int:
    """Convert a log level string to a logging level integer.

    Args:
        level: Log level string (debug, info, warning, error).
        respect_env: If True, HUDDLE_DEBUG overrides to DEBUG level.

    Returns:
        The logging level as an integer.
    """
    if respect_env and getenv("HUDDLE_DEBUG", None):
        return logging.DEBUG

    log_levels = logging.getLevelNamesMapping()
    return log_levels.get(level.upper(), logging.INFO)


def _build_processors(log_format: LogFormatType) -> list[structlog.typing.Processor]:
    processors: list[structlog.typing.Processor] = [
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if log_format == "json":
        # Add dict_tracebacks for structured exception logging in JSON
        processors.append(structlog.processors.dict_tracebacks)
        processors.append(structlog.processors.JSONRenderer())
    else:
        # Text format: "timestamp [level] event key=value ..."
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    return processors


def _create_logger(
    log_file_path: str,
    *,
    log_level: int | None = None,
    log_format: LogFormatType = "json",
    max_bytes: int | None = None,
    backup_count: int | None = None,
) -> "FilteringBoundLogger":  # noqa: UP037
    """Create a standalone structlog logger writing to the specified file.

    Args:
        log_file_path: Path to the log file (will be opened in append mode).
        log_level: Override log level (uses env vars if not specified).
        log_format: Output format, either "json" or "text".
        max_bytes: Maximum size in bytes before rotation. Must be set with
            backup_count for rotation to be enabled.
        backup_count: Number of rotated log files to keep. Must be set with
            max_bytes for rotation to be enabled.

    Returns:
        A configured FilteringBoundLogger instance.
    """
    log_path = Path(log_file_path)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    effective_level = log_level if log_level is not None else _get_log_level()

    # Use stdlib logger with RotatingFileHandler when both max_bytes and backup_count
    # are provided, otherwise use direct file writing
    raw_logger: object
    if max_bytes is not None and backup_count is not None:
        stdlib_logger = logging.getLogger(f"huddle.{log_path.stem}.{id(log_path)}")
        stdlib_logger.handlers.clear()
        stdlib_logger.propagate = False
        stdlib_logger.setLevel(effective_level)

        handler = RotatingFileHandler(
            log_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
        )
        handler.setLevel(effective_level)
        # structlog renders the line, the handler only writes it
        handler.setFormatter(logging.Formatter("%(message)s"))
        stdlib_logger.addHandler(handler)
        raw_logger = stdlib_logger
    else:
        raw_logger = structlog.WriteLoggerFactory(file=log_path.open("a"))()

    return _wrap(raw_logger, effective_level, log_format)


def _create_stream_logger(
    stream: TextIO,
    *,
    log_level: int | None = None,
    log_format: LogFormatType = "json",
) -> "FilteringBoundLogger":  # noqa: UP037
    """Create a standalone structlog logger writing to an open text stream."""
    effective_level = log_level if log_level is not None else _get_log_level()
    raw_logger = structlog.PrintLoggerFactory(file=stream)()
    return _wrap(raw_logger, effective_level, log_format)


def _wrap(
    raw_logger: object,
    level: int,
    log_format: LogFormatType,
) -> "FilteringBoundLogger":  # noqa: UP037
    # wrap_logger leaves the global structlog configuration untouched
    return cast(
        "FilteringBoundLogger",
        structlog.wrap_logger(
            raw_logger,
            processors=_build_processors(log_format),
            wrapper_class=structlog.make_filtering_bound_logger(level),
            context_class=dict,
        ),
    )


def create_host_logger(
    *,
    level: str = "info",
    log_format: LogFormatType = "json",
    log_file: str = "",
    max_bytes: int | None = None,
    backup_count: int | None = None,
) -> "FilteringBoundLogger":  # noqa: UP037
    """Create a logger for the host process.

    Writes structured logs to either a specified file or the default host log
    file at ``<huddle home>/logs/host.log``.

    The log level can be overridden by environment variables:
    - HUDDLE_DEBUG: If set, enables DEBUG level logging regardless of config

    Args:
        level: Log level threshold (debug, info, warning, error).
        log_format: Output format, either "json" or "text".
        log_file: Path to log file (uses the default host log if empty).
        max_bytes: Maximum size in bytes before rotation.
        backup_count: Number of rotated log files to keep.

    Returns:
        A FilteringBoundLogger instance bound to ``component="host"``.
    """
    effective_file = log_file if log_file else str(get_huddle_host_log_file())
    logger = _create_logger(
        effective_file,
        log_level=_log_level_from_string(level, respect_env=True),
        log_format=log_format,
        max_bytes=max_bytes,
        backup_count=backup_count,
    )
    return logger.bind(component="host")


def create_worker_logger(
    *,
    level: str | None = None,
    stream: TextIO | None = None,
) -> "FilteringBoundLogger":  # noqa: UP037
    """Create a logger for the worker process.

    The worker's stdout carries the control channel, so its logs are written
    as JSON lines to stderr, where the supervisor picks them up.

    Args:
        level: Optional log level string. If provided, overrides
            HUDDLE_LOG_LEVEL but not HUDDLE_DEBUG.
        stream: Destination stream (stderr if None).

    Returns:
        A FilteringBoundLogger instance bound to ``component="worker"``.
    """
    effective_level: int | None = None
    if level is not None:
        effective_level = _log_level_from_string(level, respect_env=True)

    logger = _create_stream_logger(
        stream if stream is not None else sys.stderr,
        log_level=effective_level,
    )
    return logger.bind(component="worker")


@cache
def get_fallback_logger() -> "FilteringBoundLogger":  # noqa: UP037
    """Return a shared text logger on stderr for components built without one."""
    return _create_stream_logger(sys.stderr, log_format="text")
