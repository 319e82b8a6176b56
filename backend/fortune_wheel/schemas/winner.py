import uuid
from datetime import datetime
from typing import Any

from pydantic import Field, model_validator

from fortune_wheel.models.winner import FORMER_EMPLOYEE_NAME, DrawTrigger, Winner
from fortune_wheel.schemas.base import CamelModel


class WinnerEmployee(CamelModel):
    """Snapshot of the employee taken at draw time."""

    id: int | None = None
    first_name: str = FORMER_EMPLOYEE_NAME
    last_name: str = ""
    avatar: str = ""


class WinnerResponse(CamelModel):
    id: uuid.UUID
    game_slug: str
    drawn_at: datetime
    trigger: DrawTrigger
    gift: str = ""
    sequence: int
    employee: WinnerEmployee

    @model_validator(mode="before")
    @classmethod
    def from_winner_row(cls, data: Any) -> Any:
        if not isinstance(data, Winner):
            return data
        return {
            "id": data.id,
            "game_slug": data.game_slug,
            "drawn_at": data.drawn_at,
            "trigger": data.trigger,
            "gift": data.gift or "",
            "sequence": data.sequence,
            "employee": {
                "id": data.employee_id,
                "first_name": data.employee_first_name or FORMER_EMPLOYEE_NAME,
                "last_name": data.employee_last_name or "",
                "avatar": data.employee_avatar or "",
            },
        }


class WinnerEnvelope(CamelModel):
    winner: WinnerResponse


class WinnerListResponse(CamelModel):
    winners: list[WinnerResponse]


class GiftUpdate(CamelModel):
    gift: str = Field("", max_length=255)


class BulkGiftItem(CamelModel):
    id: uuid.UUID
    gift: str = Field("", max_length=255)


class BulkGiftUpdate(CamelModel):
    updates: list[BulkGiftItem]


class ResetResponse(CamelModel):
    deleted: int
    reactivated: int
