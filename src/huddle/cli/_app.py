"""The command-line interface for huddle."""
# ruff: noqa: TC003  # Path needed at runtime for cyclopts parameter parsing

from pathlib import Path
from typing import Annotated

from cyclopts import App, Parameter
from rich.console import Console

from huddle.config import safe_load_settings

from ._commands import register_commands
from ._context import CLIContext

_HELP = "Run and manage the huddle chat service."


def _run_with_context(
    app: App,
    tokens: tuple[str, ...],
    *,
    no_color: bool,
    settings: Path | None,
) -> None:
    loaded, settings_error = safe_load_settings(settings_path=settings)
    ctx = CLIContext(
        settings=loaded,
        settings_path=settings,
        settings_error=settings_error,
        no_color=no_color,
    )
    CLIContext.set_current(ctx)
    try:
        app(tokens)
    finally:
        CLIContext.reset()


def create_app(
    console: Console | None = None,
    error_console: Console | None = None,
    *,
    exit_on_error: bool = True,
) -> App:
    if console is None:
        console = Console()
    if error_console is None:
        error_console = Console(stderr=True)
    app = App(
        name="huddle",
        help=_HELP,
        help_on_error=True,
        console=console,
        error_console=error_console,
        exit_on_error=exit_on_error,
    )

    @app.meta.default
    def _default(  # pyright: ignore[reportUnusedFunction]
        *tokens: Annotated[str, Parameter(show=False, allow_leading_hyphen=True)],
        no_color: Annotated[
            bool, Parameter(name="--no-color", help="Disable colored output")
        ] = False,
        settings: Annotated[
            Path | None, Parameter(name="--settings", help="Path to settings file")
        ] = None,
    ) -> None:
        """Launch huddle CLI with global options.

        Args:
            tokens: Command tokens to pass to subcommands.
            no_color: Disable colored output.
            settings: Explicit path to the settings file.
        """
        _run_with_context(app, tokens, no_color=no_color, settings=settings)

    register_commands(app)
    return app


app = create_app()


def main() -> None:
    """Default entrypoint for the `huddle` CLI."""
    app.meta()


if __name__ == "__main__":
    main()
