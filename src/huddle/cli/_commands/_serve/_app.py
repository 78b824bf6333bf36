"""Control application factory for the serve command.

This module provides a factory function for creating the in-process
FastAPI control application that exposes supervisor control endpoints.
"""

from fastapi import FastAPI

from huddle.supervisor import ServiceSupervisor, create_control_router


def create_control_app(supervisor: ServiceSupervisor) -> FastAPI:
    """Create the FastAPI control application.

    Args:
        supervisor: The ServiceSupervisor instance to control.

    Returns:
        A FastAPI application with supervisor control endpoints.
    """
    app = FastAPI(
        title="huddle control",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    control_router = create_control_router(supervisor)
    app.include_router(control_router)

    return app
