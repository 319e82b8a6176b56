"""
Schedule descriptors as stored in ``games.schedule_payload``.

    {"mode": "repeat", "frequency": "week", "timeOfDay": "13:00", "dayOfWeek": "FRI"}
    {"mode": "once", "runAt": "2026-03-01T17:00:00Z", "completedAt": null}
"""
import re
from datetime import datetime, timezone
from typing import Annotated, Literal, Union

from pydantic import Field, field_validator

from fortune_wheel.schemas.base import CamelModel

DAY_CODES = ("SUN", "MON", "TUE", "WED", "THU", "FRI", "SAT")
TIME_OF_DAY_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")

Frequency = Literal["minute", "hour", "day", "week"]


class RepeatSchedule(CamelModel):
    mode: Literal["repeat"] = "repeat"
    frequency: Frequency = "week"
    time_of_day: str | None = None  # "HH:MM", for day/week
    hour_minute: str | None = None  # "MM", for hour
    day_of_week: str | None = None  # SUN..SAT, for week

    @field_validator("time_of_day")
    @classmethod
    def check_time_of_day(cls, v: str | None) -> str | None:
        if v is None:
            return v
        match = TIME_OF_DAY_RE.match(v.strip())
        if not match:
            raise ValueError("timeOfDay must be HH:MM (24h)")
        return f"{int(match.group(1)):02d}:{match.group(2)}"

    @field_validator("hour_minute", mode="before")
    @classmethod
    def check_hour_minute(cls, v: str | int | None) -> str | None:
        if v is None or v == "":
            return None
        try:
            minute = int(v)
        except (TypeError, ValueError):
            raise ValueError("hourMinute must be a number between 0 and 59")
        if not 0 <= minute <= 59:
            raise ValueError("hourMinute must be a number between 0 and 59")
        return f"{minute:02d}"

    @field_validator("day_of_week")
    @classmethod
    def check_day_of_week(cls, v: str | None) -> str | None:
        if v is None:
            return v
        code = v.strip().upper()[:3]
        if code not in DAY_CODES:
            raise ValueError(f"dayOfWeek must be one of {', '.join(DAY_CODES)}")
        return code


class OnceSchedule(CamelModel):
    mode: Literal["once"] = "once"
    run_at: datetime
    completed_at: datetime | None = None

    @field_validator("run_at", "completed_at")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


ScheduleDescriptor = Annotated[Union[RepeatSchedule, OnceSchedule], Field(discriminator="mode")]
