# pyright: reportUnusedCallResult=false, reportUnusedFunction=false
# pyright: reportAny=false, reportUnknownMemberType=false
# ruff: noqa: A002, TC003
"""Logs command for viewing the host log."""

from pathlib import Path
from typing import Annotated

import polars as pl
from cyclopts import App, Parameter

from huddle.cli._context import CLIContext, OutputFormat
from huddle.cli._shared import (
    ExitCode,
    exit_with_error,
    format_json,
    format_table,
    parse_log_to_dataframe,
)
from huddle.enums import LogLevel
from huddle.utils import get_huddle_host_log_file

# Level ordering for filtering (index = severity)
_LEVEL_ORDER = [level.value for level in LogLevel]

# Columns shown in table output, in order
_TABLE_COLUMNS = ("timestamp", "level", "event")

_VALUE_DISPLAY_LEN = 48

app = App(name="logs", help="View the huddle host log", help_on_error=True)


def filter_logs(
    df: pl.DataFrame,
    *,
    level: LogLevel = LogLevel.DEBUG,
    event: str | None = None,
    limit: int | None = None,
) -> pl.DataFrame:
    """Filter host log entries.

    Args:
        df: Parsed log entries.
        level: Minimum level to keep.
        event: Keep entries whose event name contains this substring.
        limit: Keep only the last ``limit`` entries.

    Returns:
        The filtered frame, oldest entry first.
    """
    if "level" in df.columns:
        allowed = _LEVEL_ORDER[_LEVEL_ORDER.index(level.value) :]
        df = df.filter(pl.col("level").cast(pl.Utf8).str.to_lowercase().is_in(allowed))
    if event is not None and "event" in df.columns:
        df = df.filter(pl.col("event").cast(pl.Utf8).str.contains(event, literal=True))
    if limit is not None:
        df = df.tail(limit)
    return df


def _truncate(value: object) -> str:
    text = "" if value is None else str(value)
    if len(text) > _VALUE_DISPLAY_LEN:
        return text[: _VALUE_DISPLAY_LEN - 3] + "..."
    return text


def _to_table(df: pl.DataFrame) -> str:
    leading = [c for c in _TABLE_COLUMNS if c in df.columns]
    extra = [c for c in df.columns if c not in leading]
    rows: list[list[str]] = []
    for entry in df.iter_rows(named=True):
        details = " ".join(
            f"{key}={_truncate(entry[key])}" for key in extra if entry[key] is not None
        )
        rows.append([_truncate(entry[c]) for c in leading] + [details])
    return format_table([*leading, "details"], rows)


@app.default
def logs(
    *,
    level: Annotated[
        LogLevel,
        Parameter(name=["--level", "-l"], help="Minimum level to show"),
    ] = LogLevel.INFO,
    event: Annotated[
        str | None,
        Parameter(name=["--event", "-e"], help="Only events containing this text"),
    ] = None,
    limit: Annotated[
        int,
        Parameter(name=["--limit", "-n"], help="Show at most this many entries"),
    ] = 50,
    format: Annotated[
        OutputFormat,
        Parameter(name=["--format", "-f"], help="Output format (table, json)"),
    ] = OutputFormat.TABLE,
    file: Annotated[
        Path | None,
        Parameter(help="Log file to read (defaults to the host log)"),
    ] = None,
) -> None:
    """Show recent host log entries.

    Only JSON-formatted logs can be read.
    """
    settings = CLIContext.get_current().settings
    log_path = file or Path(settings.logging.file or get_huddle_host_log_file())
    if not log_path.exists():
        exit_with_error(f"Log file not found: {log_path}", ExitCode.NOT_FOUND)

    try:
        df = parse_log_to_dataframe(str(log_path))
    except pl.exceptions.PolarsError as e:
        exit_with_error(f"Failed to parse {log_path}: {e}", ExitCode.LOAD_ERROR)

    df = filter_logs(df, level=level, event=event, limit=limit)
    if format is OutputFormat.JSON:
        print(format_json({"entries": df.to_dicts()}))
    elif format is OutputFormat.TABLE:
        if df.height == 0:
            print("No matching log entries")
            return
        print(_to_table(df))
    else:
        exit_with_error(f"Unsupported format: {format}", ExitCode.VALIDATION_ERROR)
