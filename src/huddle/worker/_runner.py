"""Worker process entry point.

The worker's stdout carries the control channel, so the original stdout
descriptor is set aside for control messages and descriptor 1 is pointed
at stderr before anything else can print.
"""

import os
import sys
from typing import NoReturn

import anyio

from huddle.control import StdioEndpoint
from huddle.utils import create_worker_logger

from ._process import WorkerProcess, WorkerTimeouts


def run_worker(
    *,
    log_level: str | None = None,
    timeouts: WorkerTimeouts | None = None,
) -> NoReturn:
    """Run the worker until the control channel closes, then exit.

    Exits with 0 after a clean end of stream and with 1 after an internal
    fault, whether or not the fault teardown finished in time.
    """
    sys.stdout.flush()
    control_fd = os.dup(sys.stdout.fileno())
    os.dup2(sys.stderr.fileno(), sys.stdout.fileno())
    control_out = os.fdopen(control_fd, "wb")
    sys.stdout = sys.stderr

    logger = create_worker_logger(level=log_level)
    worker = WorkerProcess(
        StdioEndpoint(sys.stdin.buffer, control_out),
        logger=logger,
        timeouts=timeouts,
    )
    logger.info("worker_started", pid=os.getpid())

    exit_code = 1
    try:
        exit_code = anyio.run(worker.run, backend="asyncio")
    except KeyboardInterrupt:
        logger.warning("worker_interrupted")
    finally:
        logger.info("worker_exiting", exit_code=exit_code)
        try:
            control_out.flush()
        except OSError:
            logger.debug("control_flush_failed")
        sys.stderr.flush()
    # Abandoned reader threads must not keep the process alive
    os._exit(exit_code)
