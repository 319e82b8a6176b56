"""
Admin endpoints: game CRUD, roster management and winner history.

Every route except ``/login`` requires the shared admin secret.
"""
import uuid

from fastapi import APIRouter, Depends, Header, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from fortune_wheel.config import settings
from fortune_wheel.core.dependencies import check_admin_password, get_db, get_registry, require_admin
from fortune_wheel.core.exceptions import BadRequestError, UnauthorizedError
from fortune_wheel.schemas.auth import AdminLogin, AdminLoginResponse
from fortune_wheel.schemas.employee import (
    EmployeeCreate,
    EmployeeEnvelope,
    EmployeeListResponse,
    EmployeeUpdate,
    RosterReplace,
)
from fortune_wheel.schemas.game import GameCreate, GameEnvelope, GameListResponse, GameUpdate
from fortune_wheel.schemas.winner import (
    BulkGiftUpdate,
    GiftUpdate,
    ResetResponse,
    WinnerEnvelope,
    WinnerListResponse,
)
from fortune_wheel.services import game_service, roster_service
from fortune_wheel.services.game_store import GameStore
from fortune_wheel.services.schedule_registry import ScheduleRegistry
from fortune_wheel.services.winner_history import WinnerHistoryManager

router = APIRouter(prefix="/admin", tags=["admin"])

HISTORY_QUERY_MAX = 10_000


def _default_history_limit() -> int:
    return settings.WINNER_HISTORY_LIMIT if settings.WINNER_HISTORY_LIMIT > 0 else 1000


@router.post("/login", response_model=AdminLoginResponse)
async def login(
    body: AdminLogin | None = None,
    x_admin_password: str | None = Header(None),
):
    password = (body.password if body else None) or x_admin_password
    if not check_admin_password(password):
        raise UnauthorizedError("Invalid password")
    return {"success": True}


# ==================== Games ====================
@router.get("/games", response_model=GameListResponse)
async def list_games(db: AsyncSession = Depends(get_db), _admin: None = Depends(require_admin)):
    return {"games": await GameStore(db).get_games()}


@router.post("/games", response_model=GameEnvelope, status_code=status.HTTP_201_CREATED)
async def create_game(
    body: GameCreate,
    db: AsyncSession = Depends(get_db),
    registry: ScheduleRegistry = Depends(get_registry),
    _admin: None = Depends(require_admin),
):
    game = await game_service.create_game(db, body, registry)
    return {"game": game}


@router.get("/games/{slug}", response_model=GameEnvelope)
async def get_game(slug: str, db: AsyncSession = Depends(get_db), _admin: None = Depends(require_admin)):
    return {"game": await GameStore(db).require_game(slug)}


@router.patch("/games/{slug}/config", response_model=GameEnvelope)
async def update_game_config(
    slug: str,
    body: GameUpdate,
    db: AsyncSession = Depends(get_db),
    registry: ScheduleRegistry = Depends(get_registry),
    _admin: None = Depends(require_admin),
):
    game = await game_service.update_game_config(db, slug, body, registry)
    return {"game": game}


@router.delete("/games/{slug}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_game(
    slug: str,
    db: AsyncSession = Depends(get_db),
    registry: ScheduleRegistry = Depends(get_registry),
    _admin: None = Depends(require_admin),
):
    await game_service.delete_game(db, slug, registry)


# ==================== Roster ====================
@router.get("/games/{slug}/employees", response_model=EmployeeListResponse)
async def list_employees(slug: str, db: AsyncSession = Depends(get_db), _admin: None = Depends(require_admin)):
    store = GameStore(db)
    await store.require_game(slug)
    return {"employees": await store.get_employees(slug)}


@router.put("/games/{slug}/employees", response_model=EmployeeListResponse)
async def replace_employees(
    slug: str,
    body: RosterReplace,
    db: AsyncSession = Depends(get_db),
    _admin: None = Depends(require_admin),
):
    employees = await roster_service.replace_roster(db, slug, body)
    await db.commit()
    return {"employees": employees}


@router.post("/games/{slug}/employees", response_model=EmployeeEnvelope, status_code=status.HTTP_201_CREATED)
async def add_employee(
    slug: str,
    body: EmployeeCreate,
    db: AsyncSession = Depends(get_db),
    _admin: None = Depends(require_admin),
):
    employee = await roster_service.add_employee(db, slug, body)
    await db.commit()
    return {"employee": employee}


@router.patch("/games/{slug}/employees/{employee_id}", response_model=EmployeeEnvelope)
async def edit_employee(
    slug: str,
    employee_id: int,
    body: EmployeeUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: None = Depends(require_admin),
):
    employee = await roster_service.edit_employee(db, slug, employee_id, body)
    await db.commit()
    return {"employee": employee}


@router.delete("/games/{slug}/employees/{employee_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_employee(
    slug: str,
    employee_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: None = Depends(require_admin),
):
    await roster_service.remove_employee(db, slug, employee_id)
    await db.commit()


# ==================== Winners ====================
@router.get("/games/{slug}/winners", response_model=WinnerListResponse)
async def list_winners(
    slug: str,
    limit: int | None = Query(None, ge=1, le=HISTORY_QUERY_MAX),
    db: AsyncSession = Depends(get_db),
    _admin: None = Depends(require_admin),
):
    store = GameStore(db)
    await store.require_game(slug)
    return {"winners": await store.get_recent_winners(slug, limit or _default_history_limit())}


@router.get("/games/{slug}/winners/export")
async def export_winners(
    slug: str,
    limit: int | None = Query(None, ge=1, le=HISTORY_QUERY_MAX),
    db: AsyncSession = Depends(get_db),
    _admin: None = Depends(require_admin),
):
    content = await WinnerHistoryManager(db).export(slug, limit or _default_history_limit())
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{slug}-winners.csv"'},
    )


@router.put("/games/{slug}/winners/gifts", response_model=WinnerListResponse)
async def bulk_update_gifts(
    slug: str,
    body: BulkGiftUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: None = Depends(require_admin),
):
    winners = await WinnerHistoryManager(db).bulk_update_gifts(
        slug, [(item.id, item.gift) for item in body.updates]
    )
    await db.commit()
    return {"winners": winners}


@router.delete("/games/{slug}/winners", response_model=ResetResponse)
async def reset_winners(
    slug: str,
    confirm: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    _admin: None = Depends(require_admin),
):
    """Delete the game's whole winner history and reactivate its roster. Irreversible."""
    if not confirm:
        raise BadRequestError("Resetting winner history cannot be undone; repeat with confirm=true")
    deleted, reactivated = await WinnerHistoryManager(db).reset(slug)
    await db.commit()
    return {"deleted": deleted, "reactivated": reactivated}


@router.patch("/winners/{winner_id}/gift", response_model=WinnerEnvelope)
async def update_gift(
    winner_id: uuid.UUID,
    body: GiftUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: None = Depends(require_admin),
):
    winner = await WinnerHistoryManager(db).update_gift(winner_id, body.gift)
    await db.commit()
    return {"winner": winner}
