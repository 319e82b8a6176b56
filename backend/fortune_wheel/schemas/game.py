from datetime import datetime
from typing import Any

from pydantic import Field, field_validator

from fortune_wheel.models.game import ScheduleType
from fortune_wheel.schemas.base import CamelModel


def split_gifts(raw: str | list[str] | None) -> list[str]:
    """Normalise a gift list given as a comma-separated string or a list."""
    if not raw:
        return []
    items = raw.split(",") if isinstance(raw, str) else raw
    return [item.strip() for item in items if item and item.strip()]


class GameCreate(CamelModel):
    slug: str = Field(..., min_length=1, max_length=100)
    schedule_type: ScheduleType | None = None
    cron: str | None = None
    timezone: str | None = None
    # Validated into a ScheduleDescriptor by the game service
    schedule_payload: dict[str, Any] | None = None
    allow_repeat_winners: bool = False
    gifts: list[str] | str | None = None


class GameUpdate(CamelModel):
    schedule_type: ScheduleType | None = None
    cron: str | None = None
    timezone: str | None = None
    schedule_payload: dict[str, Any] | None = None
    allow_repeat_winners: bool | None = None
    gifts: list[str] | str | None = None


class GameResponse(CamelModel):
    slug: str
    name: str
    cron: str
    timezone: str
    schedule_type: ScheduleType
    schedule_payload: dict[str, Any] | None = None
    allow_repeat_winners: bool
    gifts: list[str] = []
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("gifts", mode="before")
    @classmethod
    def parse_gifts(cls, v: Any) -> list[str]:
        return split_gifts(v)


class GameEnvelope(CamelModel):
    game: GameResponse


class GameListResponse(CamelModel):
    games: list[GameResponse]


class GameConfigResponse(CamelModel):
    """Spectator view of a game's schedule."""

    cron: str
    timezone: str
    schedule_type: ScheduleType
    schedule_payload: dict[str, Any] | None = None
    next_draw_at: datetime | None = None
    allow_repeat_winners: bool
    gifts: list[str] = []
