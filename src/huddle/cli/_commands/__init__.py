"""huddle CLI commands."""
# pyright: reportUnusedCallResult=false

from cyclopts import App

from ._config import app as config_app
from ._logs import app as logs_app
from ._serve import app as serve_app
from ._worker import app as worker_app

__all__ = [
    "config_app",
    "logs_app",
    "register_commands",
    "serve_app",
    "worker_app",
]


def register_commands(app: App) -> None:
    app.command(config_app)
    app.command(logs_app)
    app.command(serve_app)
    app.command(worker_app)

    @app.command(name="--prefix")
    def _prefix() -> None:  # pyright: ignore[reportUnusedFunction]
        """Show huddle's install path."""
        from huddle.utils import get_package_dir

        print(get_package_dir())
