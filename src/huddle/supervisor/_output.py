"""Output sink implementations for the supervisor.

This module provides concrete implementations of the OutputSink protocol
for consuming and displaying worker output and lifecycle events.
"""

from typing import Literal, final

from rich.console import Console
from rich.style import Style
from rich.text import Text
from structlog.typing import FilteringBoundLogger  # noqa: TC002

from ._models import ServiceEvent, ServiceEventType


@final
class ConcatenatedOutputSink:
    """Output sink that writes to a rich console with formatted prefixes.

    Formats worker output as ``[name:pid] line`` with color coding:
    - stdout: Default styling
    - stderr: Dim styling
    - Events: Special formatting based on event type
    """

    __slots__ = ("_console", "_event_styles", "_stderr_style", "_stdout_style")

    def __init__(self, console: Console | None = None) -> None:
        """Initialize the output sink.

        Args:
            console: Rich Console instance for output. If None, creates a new one.
        """
        self._console = console or Console()
        self._stdout_style = Style()
        self._stderr_style = Style(dim=True)
        self._event_styles: dict[ServiceEventType, Style] = {
            ServiceEventType.STARTED: Style(color="green", bold=True),
            ServiceEventType.STOPPED: Style(color="yellow"),
            ServiceEventType.CRASHED: Style(color="red", bold=True),
            ServiceEventType.FAILED: Style(color="red"),
            ServiceEventType.ESCALATED: Style(color="magenta", bold=True),
        }

    async def write_line(
        self,
        service_name: str,
        pid: int,
        stream: Literal["stdout", "stderr"],
        line: str,
    ) -> None:
        prefix = f"[{service_name}:{pid}]"
        style = self._stderr_style if stream == "stderr" else self._stdout_style

        text = Text()
        _ = text.append(prefix, style=Style(color="blue", bold=True))
        _ = text.append(" ")
        _ = text.append(line, style=style)

        self._console.print(text)

    async def write_event(
        self,
        service_name: str,
        event: ServiceEvent,
    ) -> None:
        style = self._event_styles.get(event.event_type, Style())

        text = Text()
        _ = text.append(f"[{service_name}]", style=Style(color="blue", bold=True))
        _ = text.append(" ")
        _ = text.append(event.event_type.value.upper(), style=style)

        if event.pid is not None:
            _ = text.append(f" (pid={event.pid})", style=Style(dim=True))

        if event.exit_code is not None:
            _ = text.append(f" exit_code={event.exit_code}", style=Style(dim=True))

        if event.message:
            _ = text.append(f" - {event.message}", style=style)

        self._console.print(text)


@final
class LoggingOutputSink:
    """Output sink that records worker output and events in a structlog logger."""

    __slots__ = ("_logger",)

    def __init__(self, logger: FilteringBoundLogger) -> None:
        self._logger = logger

    async def write_line(
        self,
        service_name: str,
        pid: int,
        stream: Literal["stdout", "stderr"],
        line: str,
    ) -> None:
        self._logger.info(
            "worker_output", service=service_name, pid=pid, stream=stream, line=line
        )

    async def write_event(
        self,
        service_name: str,
        event: ServiceEvent,
    ) -> None:
        self._logger.info(
            "service_event",
            service=service_name,
            event=event.event_type.value,
            pid=event.pid,
            exit_code=event.exit_code,
            message=event.message,
        )
