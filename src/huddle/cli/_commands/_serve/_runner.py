"""Async runner for the serve command.

This module provides the async entry point that runs the supervisor and the
control app together until the process is asked to stop.
"""

import signal

import anyio
import uvicorn
from rich.console import Console
from structlog.typing import FilteringBoundLogger  # noqa: TC002

from huddle.config import HostSettings, SettingsStore  # noqa: TC001
from huddle.server import EmbeddedServer
from huddle.supervisor import ConcatenatedOutputSink, ServiceSupervisor

from ._app import create_control_app


async def run_serve(
    settings: HostSettings,
    settings_store: SettingsStore,
    logger: FilteringBoundLogger,
    autostart: bool,  # noqa: FBT001
) -> None:
    """Run the supervisor and its control API until SIGINT or SIGTERM.

    Args:
        settings: Host settings.
        settings_store: Store the supervisor persists port and path changes to.
        logger: Host logger.
        autostart: Start the chat service immediately.
    """
    console = Console()
    supervisor = ServiceSupervisor.from_settings(
        settings,
        settings_store=settings_store,
        output_sink=ConcatenatedOutputSink(console),
        logger=logger,
    )
    control_server = EmbeddedServer(
        uvicorn.Config(
            app=create_control_app(supervisor),
            host="127.0.0.1",
            port=settings.control_port,
            lifespan="off",
            log_config=None,
            log_level="warning",
            access_log=False,
        )
    )

    with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
        async with supervisor, anyio.create_task_group() as tg:
            # Start the control server first so it's ready before the service starts
            tg.start_soon(control_server.serve)

            if autostart:
                result = await supervisor.start(settings.port, settings.storage_path)
                if result.success:
                    console.print(f"Chat service running on port {result.port}")
                else:
                    console.print(
                        f"[red]Chat service failed to start:[/red] "
                        f"{result.error} - {result.reason}"
                    )

            async for signum in signals:
                logger.info("shutdown_requested", signal=signal.Signals(signum).name)
                break

            control_server.should_exit = True
    logger.info("host_stopped")
