from fastapi import APIRouter

from ._auth import router as auth_router
from ._channels import router as channels_router
from ._health import router as health_router
from ._messages import router as messages_router
from ._users import router as users_router
from ._ws import router as ws_router

router = APIRouter()

router.include_router(health_router)
router.include_router(auth_router)
router.include_router(users_router)
router.include_router(channels_router)
router.include_router(messages_router)
router.include_router(ws_router)
