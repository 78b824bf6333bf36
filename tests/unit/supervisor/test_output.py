import io

import pytest
from pytest_mock import MockerFixture
from rich.console import Console

from huddle.supervisor import (
    ConcatenatedOutputSink,
    LoggingOutputSink,
    OutputSink,
    ServiceEvent,
    ServiceEventType,
)

pytestmark = pytest.mark.anyio


def make_console() -> tuple[Console, io.StringIO]:
    buffer = io.StringIO()
    return Console(file=buffer, force_terminal=False, width=200), buffer


class TestConcatenatedOutputSink:
    async def test_prefixes_lines_with_service_and_pid(self) -> None:
        console, buffer = make_console()
        sink = ConcatenatedOutputSink(console)

        await sink.write_line("chat", 4242, "stderr", "booting")

        assert buffer.getvalue() == "[chat:4242] booting\n"

    async def test_formats_events(self) -> None:
        console, buffer = make_console()
        sink = ConcatenatedOutputSink(console)
        event = ServiceEvent(
            service_name="chat",
            event_type=ServiceEventType.CRASHED,
            timestamp="2026-01-01T00:00:00Z",
            pid=7,
            exit_code=1,
            message="Worker exited unexpectedly",
        )

        await sink.write_event("chat", event)

        assert buffer.getvalue() == (
            "[chat] CRASHED (pid=7) exit_code=1 - Worker exited unexpectedly\n"
        )

    def test_satisfies_protocol(self) -> None:
        assert isinstance(ConcatenatedOutputSink(make_console()[0]), OutputSink)


class TestLoggingOutputSink:
    async def test_logs_lines_and_events(self, mocker: MockerFixture) -> None:
        logger = mocker.Mock()
        sink = LoggingOutputSink(logger)

        await sink.write_line("chat", 1, "stdout", "hello")
        await sink.write_event(
            "chat",
            ServiceEvent(
                service_name="chat",
                event_type=ServiceEventType.STARTED,
                timestamp="2026-01-01T00:00:00Z",
                pid=1,
            ),
        )

        logger.info.assert_any_call(
            "worker_output", service="chat", pid=1, stream="stdout", line="hello"
        )
        logger.info.assert_any_call(
            "service_event",
            service="chat",
            event="started",
            pid=1,
            exit_code=None,
            message=None,
        )
