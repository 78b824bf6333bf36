from collections.abc import Callable

import pytest
from rich.console import Console


@pytest.fixture
def run_cli() -> Callable[..., int]:
    """Return a function that runs the CLI and returns its exit code."""
    from huddle.cli import create_app

    def _run(*tokens: str) -> int:
        app = create_app(
            Console(force_terminal=False),
            Console(stderr=True, force_terminal=False),
            exit_on_error=False,
        )
        try:
            app.meta(list(tokens))
        except SystemExit as e:
            return int(e.code or 0)
        return 0

    return _run
