# Schemas package
from fortune_wheel.schemas.auth import AdminLogin, AdminLoginResponse
from fortune_wheel.schemas.employee import (
    EmployeeCreate,
    EmployeeEnvelope,
    EmployeeListResponse,
    EmployeeResponse,
    EmployeeUpdate,
    RosterEntry,
    RosterReplace,
)
from fortune_wheel.schemas.game import (
    GameConfigResponse,
    GameCreate,
    GameEnvelope,
    GameListResponse,
    GameResponse,
    GameUpdate,
)
from fortune_wheel.schemas.schedule import OnceSchedule, RepeatSchedule, ScheduleDescriptor
from fortune_wheel.schemas.winner import (
    BulkGiftItem,
    BulkGiftUpdate,
    GiftUpdate,
    ResetResponse,
    WinnerEmployee,
    WinnerEnvelope,
    WinnerListResponse,
    WinnerResponse,
)

__all__ = [
    "AdminLogin",
    "AdminLoginResponse",
    "EmployeeCreate",
    "EmployeeEnvelope",
    "EmployeeListResponse",
    "EmployeeResponse",
    "EmployeeUpdate",
    "RosterEntry",
    "RosterReplace",
    "GameConfigResponse",
    "GameCreate",
    "GameEnvelope",
    "GameListResponse",
    "GameResponse",
    "GameUpdate",
    "OnceSchedule",
    "RepeatSchedule",
    "ScheduleDescriptor",
    "BulkGiftItem",
    "BulkGiftUpdate",
    "GiftUpdate",
    "ResetResponse",
    "WinnerEmployee",
    "WinnerEnvelope",
    "WinnerListResponse",
    "WinnerResponse",
]
