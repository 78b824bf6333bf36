"""FastAPI control endpoints for the supervisor.

This module provides REST API endpoints the host uses to start, stop and
inspect the chat service.
"""

# pyright: reportUnusedFunction=false
# FastAPI route handlers are registered via decorators, not direct calls

from fastapi import APIRouter, Response, status
from pydantic import BaseModel, ConfigDict

from huddle.enums import ErrorCode

from ._supervisor import ServiceSupervisor  # noqa: TC001


class _ResponseModel(BaseModel):
    model_config = ConfigDict(use_enum_values=True)


class ServiceStatusResponse(_ResponseModel):
    """Response model for service status."""

    name: str
    state: str
    port: int | None
    storage_path: str | None
    pid: int | None
    error: str | None
    code: ErrorCode | None


class StartRequest(BaseModel):
    """Request body for starting the service."""

    port: int
    storage_path: str | None = None


class StartResponse(_ResponseModel):
    """Response model for a start request."""

    success: bool
    state: str
    port: int | None = None
    error: ErrorCode | None = None
    reason: str | None = None


class StopResponse(_ResponseModel):
    """Response model for a stop request."""

    success: bool
    state: str
    error: ErrorCode | None = None
    reason: str | None = None


class StoragePathRequest(BaseModel):
    """Request body for changing the storage path."""

    storage_path: str


class StoragePathResponse(BaseModel):
    """Response model for a storage path change."""

    storage_path: str
    restart_required: bool


_FAILURE_STATUS: dict[ErrorCode, int] = {
    ErrorCode.INVALID_PORT: status.HTTP_400_BAD_REQUEST,
    ErrorCode.BUSY: status.HTTP_409_CONFLICT,
}


def _failure_status(code: ErrorCode | None) -> int:
    """Map a failed result's error code to an HTTP status."""
    if code is None:
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    return _FAILURE_STATUS.get(code, status.HTTP_502_BAD_GATEWAY)


def create_control_router(supervisor: ServiceSupervisor) -> APIRouter:
    """Create a FastAPI router for supervisor control endpoints.

    Failed start and stop requests still return the structured result, with
    400 for an invalid port, 409 while busy and 502 for worker failures.

    Args:
        supervisor: The ServiceSupervisor instance to control.

    Returns:
        A FastAPI APIRouter with control endpoints.
    """
    router = APIRouter(prefix="/supervisor", tags=["supervisor"])

    @router.get("/status", response_model=ServiceStatusResponse)
    async def get_status() -> ServiceStatusResponse:
        """Get the service status."""
        snapshot = supervisor.status()
        return ServiceStatusResponse(
            name=supervisor.name,
            state=snapshot.state.value,
            port=snapshot.port,
            storage_path=snapshot.storage_path,
            pid=snapshot.pid,
            error=snapshot.error,
            code=snapshot.code,
        )

    @router.post("/start", response_model=StartResponse)
    async def start_service(body: StartRequest, response: Response) -> StartResponse:
        """Start the service, or move it to another port."""
        result = await supervisor.start(body.port, body.storage_path)
        if not result.success:
            response.status_code = _failure_status(result.error)
        return StartResponse(
            success=result.success,
            state=result.state.value,
            port=result.port,
            error=result.error,
            reason=result.reason,
        )

    @router.post("/stop", response_model=StopResponse)
    async def stop_service(response: Response) -> StopResponse:
        """Stop the service."""
        result = await supervisor.stop()
        if not result.success:
            response.status_code = _failure_status(result.error)
        return StopResponse(
            success=result.success,
            state=result.state.value,
            error=result.error,
            reason=result.reason,
        )

    @router.put("/storage-path", response_model=StoragePathResponse)
    async def set_storage_path(body: StoragePathRequest) -> StoragePathResponse:
        """Change the storage path used by the next start."""
        result = await supervisor.configure(body.storage_path)
        return StoragePathResponse(
            storage_path=result.storage_path,
            restart_required=result.restart_required,
        )

    return router
