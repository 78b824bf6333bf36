# pyright: reportExplicitAny=false, reportAny=false
"""Shared CLI utilities for commands.

This module provides common utilities used across CLI command implementations:
- Standardized exit codes
- Generic output formatters (JSON, YAML, TOML, table)
- Console utilities for error handling
- Host log parsing
"""

from enum import IntEnum
from typing import Any, Never

import polars as pl
from rich.console import Console

# Type alias for formattable data - uses Any to match library signatures
FormattableData = dict[str, Any]

# Schema inference length for Polars JSONL parsing
# Higher value captures sparse fields like 'error' that only appear on some entries
SCHEMA_INFER_LENGTH = 10000


class ExitCode(IntEnum):
    """Standard exit codes for huddle CLI commands."""

    SUCCESS = 0
    LOAD_ERROR = 1
    VALIDATION_ERROR = 2
    NOT_FOUND = 3
    IO_ERROR = 4
    INTERNAL_ERROR = 5


def format_json(data: FormattableData, *, indent: bool = True) -> str:
    """Format data as JSON."""
    import orjson

    options = orjson.OPT_INDENT_2 if indent else 0
    return orjson.dumps(data, option=options).decode("utf-8")


def format_yaml(data: FormattableData) -> str:
    """Format data as YAML."""
    import yaml

    return yaml.safe_dump(data, default_flow_style=False, allow_unicode=True)


def format_toml(data: FormattableData) -> str:
    """Format data as TOML."""
    import tomli_w

    return tomli_w.dumps(data)


def format_table(headers: list[str], rows: list[list[str]]) -> str:
    """Format data as a Markdown table.

    Args:
        headers: Column headers for the table.
        rows: List of rows, where each row is a list of cell values.

    Returns:
        Markdown table string representation.
    """
    from pytablewriter import MarkdownTableWriter

    writer = MarkdownTableWriter(
        headers=headers,
        value_matrix=rows,
        margin=1,
    )
    return writer.dumps()


def parse_log_to_dataframe(log_path: str) -> pl.DataFrame:
    """Parse a JSON lines log file into a Polars DataFrame.

    Raises:
        FileNotFoundError: If log file doesn't exist.
        pl.exceptions.ComputeError: If log file is malformed.
    """
    return pl.read_ndjson(log_path, infer_schema_length=SCHEMA_INFER_LENGTH)


def get_error_console() -> Console:
    """Get a Rich console configured for error output to stderr."""
    from rich.console import Console

    return Console(stderr=True)


def exit_with_error(
    message: str,
    code: ExitCode = ExitCode.INTERNAL_ERROR,
    *,
    console: Console | None = None,
) -> Never:
    """Print an error message and exit with the specified code.

    Raises:
        SystemExit: Always raised with the specified exit code.
    """
    if console is None:
        console = get_error_console()

    console.print(f"[red]Error:[/red] {message}")
    raise SystemExit(code)
