"""huddle worker command - the child process the supervisor spawns."""

from typing import Annotated

from cyclopts import App, Parameter

app = App(
    name="worker",
    help="Run a chat worker speaking the control protocol on stdin/stdout",
    help_on_error=True,
    show=False,
)


@app.default
def worker(
    *,
    log_level: Annotated[
        str | None,
        Parameter(help="Log level for diagnostics written to stderr."),
    ] = None,
) -> None:
    """Run a worker until its control channel closes.

    Not meant to be run by hand: the supervisor spawns it with piped stdio.
    """
    from huddle.worker import run_worker

    run_worker(log_level=log_level)
