# pyright: reportUnusedCallResult=false, reportUnusedFunction=false
# ruff: noqa: A002, TC003
"""Config commands for viewing and changing host settings."""

from pathlib import Path
from typing import Annotated

from cyclopts import App, Parameter

from huddle.cli._context import CLIContext, OutputFormat
from huddle.cli._shared import (
    ExitCode,
    exit_with_error,
    format_json,
    format_toml,
    format_yaml,
)
from huddle.exceptions import ConfigError

app = App(name="config", help="View and change huddle host settings", help_on_error=True)


@app.command(name="show")
def show(
    *,
    format: Annotated[
        OutputFormat,
        Parameter(name=["--format", "-f"], help="Output format (toml, json, yaml)"),
    ] = OutputFormat.TOML,
) -> None:
    """Show the effective host settings, environment overrides included.

    The signing secret is masked.
    """
    ctx = CLIContext.get_current()
    data = ctx.settings.model_dump(mode="json", exclude_none=True)
    if "secret" in data:
        data["secret"] = "********"

    if format is OutputFormat.JSON:
        print(format_json(data))
    elif format is OutputFormat.YAML:
        print(format_yaml(data), end="")
    elif format is OutputFormat.TOML:
        print(format_toml(data), end="")
    else:
        exit_with_error(f"Unsupported format: {format}", ExitCode.VALIDATION_ERROR)


@app.command(name="path")
def path() -> None:
    """Show the settings file location."""
    print(CLIContext.get_current().store.path)


def _update(**changes: object) -> None:
    store = CLIContext.get_current().store
    try:
        _ = store.update(**changes)
    except ConfigError as e:
        exit_with_error(str(e), ExitCode.VALIDATION_ERROR)
    except OSError as e:
        exit_with_error(f"Failed to write {store.path}: {e}", ExitCode.IO_ERROR)


@app.command(name="set-port")
def set_port(port: int, /) -> None:
    """Save the chat service port used by the next start.

    Args:
        port: Port between 1024 and 65535.
    """
    _update(port=port)
    print(f"Port set to {port}; it takes effect on the next start")


@app.command(name="set-storage-path")
def set_storage_path(storage_path: Path, /) -> None:
    """Save the chat database path used by the next start.

    Args:
        storage_path: Path of the chat database file.
    """
    resolved = storage_path.expanduser().resolve()
    _update(storage_path=str(resolved))
    print(f"Storage path set to {resolved}; it takes effect on the next start")
