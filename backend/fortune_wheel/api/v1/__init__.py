from fastapi import APIRouter

from fortune_wheel.api.v1.admin import router as admin_router
from fortune_wheel.api.v1.games import router as games_router

router = APIRouter()
router.include_router(games_router)
router.include_router(admin_router)
