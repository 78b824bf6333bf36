from fastapi import APIRouter

from huddle.server._deps import Context
from huddle.server._schemas import HealthResponse

router = APIRouter(prefix="", tags=["health"])


@router.get("/health")
async def get_health(context: Context) -> HealthResponse:
    return HealthResponse(status="healthy", connections=len(context.registry))
