"""User directory and presence endpoints."""

from fastapi import APIRouter

from huddle.server._deps import Context, CurrentIdentity
from huddle.storage import UserSummary

router = APIRouter(prefix="/users", tags=["users"])


@router.get("")
async def list_users(_identity: CurrentIdentity, context: Context) -> list[UserSummary]:
    return await context.store.run(context.store.db.list_users)


@router.get("/online")
async def list_online_users(
    _identity: CurrentIdentity, context: Context
) -> list[UserSummary]:
    return [
        UserSummary(id=identity.user_id, username=identity.username)
        for identity in context.registry.online_users()
    ]
