# pyright: reportUnusedCallResult=false
"""huddle serve command - runs the supervisor host."""

from typing import Annotated

import anyio
from cyclopts import App, Parameter
from pydantic import ValidationError

from huddle.cli._context import CLIContext
from huddle.cli._shared import ExitCode, exit_with_error
from huddle.utils import create_host_logger

app = App(
    name="serve",
    help="Run the chat service under the supervisor, with a local control API",
    help_on_error=True,
)


@app.default
def serve(
    *,
    port: Annotated[
        int | None,
        Parameter(help="Chat service port (defaults to the saved port)."),
    ] = None,
    control_port: Annotated[
        int | None,
        Parameter(help="Port for the supervisor control API."),
    ] = None,
    no_autostart: Annotated[
        bool,
        Parameter(help="Wait for a start request instead of starting immediately."),
    ] = False,
) -> None:
    """Run the huddle host.

    Starts the supervisor and its control API on localhost, then starts the
    chat service unless --no-autostart is given. SIGINT or SIGTERM stops the
    service and exits.
    """
    from ._runner import run_serve

    ctx = CLIContext.get_current()
    settings = ctx.settings
    updates: dict[str, object] = {}
    if port is not None:
        updates["port"] = port
    if control_port is not None:
        updates["control_port"] = control_port
    if updates:
        try:
            settings = settings.model_validate({**settings.model_dump(), **updates})
        except ValidationError as e:
            exit_with_error(str(e), ExitCode.VALIDATION_ERROR)

    logger = create_host_logger(
        level=settings.logging.level.value,
        log_format=settings.logging.format.value,  # type: ignore[arg-type]
        log_file=settings.logging.file,
    )
    if ctx.settings_error is not None:
        logger.warning("settings_load_failed", error=ctx.settings_error)

    print(f"Starting huddle (control API on http://127.0.0.1:{settings.control_port})")
    anyio.run(run_serve, settings, ctx.store, logger, not no_autostart)
