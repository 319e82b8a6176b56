"""
Spectator endpoints: roster, recent winners, schedule and manual spins for one game.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fortune_wheel.config import settings
from fortune_wheel.core.dependencies import get_db, get_registry
from fortune_wheel.db.base import utc_now
from fortune_wheel.models.winner import DrawTrigger
from fortune_wheel.schemas.employee import EmployeeListResponse
from fortune_wheel.schemas.game import GameConfigResponse
from fortune_wheel.schemas.winner import WinnerEnvelope, WinnerListResponse
from fortune_wheel.services.game_service import get_game_config
from fortune_wheel.services.game_store import GameStore
from fortune_wheel.services.schedule_registry import ScheduleRegistry

router = APIRouter(prefix="/games", tags=["games"])


@router.get("/{slug}/employees", response_model=EmployeeListResponse)
async def list_employees(slug: str, db: AsyncSession = Depends(get_db)):
    store = GameStore(db)
    await store.require_game(slug)
    return {"employees": await store.get_employees(slug)}


@router.get("/{slug}/winners", response_model=WinnerListResponse)
async def list_winners(
    slug: str,
    limit: int = Query(settings.RECENT_WINNERS_DEFAULT_LIMIT, ge=1, le=settings.RECENT_WINNERS_MAX_LIMIT),
    db: AsyncSession = Depends(get_db),
):
    store = GameStore(db)
    await store.require_game(slug)
    return {"winners": await store.get_recent_winners(slug, limit)}


@router.get("/{slug}/config", response_model=GameConfigResponse)
async def get_config(slug: str, db: AsyncSession = Depends(get_db)):
    """Schedule details plus the computed next draw instant (null when none is pending)."""
    return await get_game_config(db, slug, utc_now())


@router.post("/{slug}/spin", response_model=WinnerEnvelope)
async def spin(
    slug: str,
    db: AsyncSession = Depends(get_db),
    registry: ScheduleRegistry = Depends(get_registry),
):
    winner = await registry.draw(db, slug, DrawTrigger.MANUAL)
    return {"winner": winner}
