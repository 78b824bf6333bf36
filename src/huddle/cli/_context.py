# ruff: noqa: TC003  # Path needed at runtime for dataclass field
"""CLI context for global state management.

The CLIContext is set once at CLI startup and made available to all commands
via contextvars.
"""

import contextvars
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from huddle.config import HostSettings, SettingsStore


class OutputFormat(StrEnum):
    """Supported output formats for commands."""

    TOML = "toml"
    JSON = "json"
    YAML = "yaml"
    TABLE = "table"


@dataclass(frozen=True, slots=True)
class CLIContext:
    """Global CLI context with settings and options.

    Attributes:
        settings: Loaded host settings.
        settings_path: Explicit settings file (--settings), or None for the
            default location.
        settings_error: Error message if settings loading failed.
        no_color: Disable colored output.
    """

    settings: HostSettings = field(repr=False)
    settings_path: Path | None = None
    settings_error: str | None = None
    no_color: bool = False

    @property
    def store(self) -> SettingsStore:
        """Return the settings store for the active settings file."""
        return SettingsStore(self.settings_path)

    @classmethod
    def get_current(cls) -> "CLIContext":  # noqa: UP037
        """Get current active CLIContext, or create a default if not set."""
        ctx = _current_cli_context.get()
        if ctx is not None:
            return ctx
        return cls(settings=HostSettings())

    @classmethod
    def set_current(cls, ctx: "CLIContext") -> None:  # noqa: UP037
        """Set the current active CLIContext."""
        _ = _current_cli_context.set(ctx)

    @classmethod
    def reset(cls) -> None:
        """Reset the current CLIContext to None."""
        _ = _current_cli_context.set(None)


# Thread-safe context variable for CLIContext
_current_cli_context: "contextvars.ContextVar[CLIContext | None]" = (  # noqa: UP037
    contextvars.ContextVar("cli_context", default=None)
)
