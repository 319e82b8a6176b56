"""
Schedule calculator: turns a game's schedule into its next fire instant.

Everything here is a pure function of (schedule, now). No timers, no database,
so schedules can be checked without waiting on a wall clock.
"""
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from fortune_wheel.config import settings
from fortune_wheel.core.exceptions import ScheduleParseError
from fortune_wheel.models.game import Game, ScheduleType
from fortune_wheel.schemas.schedule import (
    OnceSchedule,
    RepeatSchedule,
    ScheduleDescriptor,
)

_descriptor_adapter: TypeAdapter[RepeatSchedule | OnceSchedule] = TypeAdapter(ScheduleDescriptor)


@dataclass(frozen=True)
class GameSchedule:
    """Immutable copy of the schedule fields of a Game.

    Timers hold one of these instead of an ORM instance, so a fire never reads
    a detached or half-updated row.
    """

    slug: str
    schedule_type: ScheduleType
    cron: str
    timezone: str
    payload: dict[str, Any] | None = None

    @classmethod
    def from_game(cls, game: Game) -> "GameSchedule":
        payload = load_schedule_payload(game.schedule_payload)
        return cls(
            slug=game.slug,
            schedule_type=ScheduleType(game.schedule_type or ScheduleType.REPEAT),
            cron=game.cron,
            timezone=game.timezone or settings.DEFAULT_TIMEZONE,
            payload=dict(payload) if payload else None,
        )


def as_schedule(game: Game | GameSchedule) -> GameSchedule:
    return game if isinstance(game, GameSchedule) else GameSchedule.from_game(game)


def load_schedule_payload(raw: Any) -> dict[str, Any] | None:
    """Read a stored payload leniently: dict, JSON string, or nothing."""
    if not raw:
        return None
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            return None
        return parsed if isinstance(parsed, dict) else None
    return None


def parse_schedule_descriptor(
    raw: dict[str, Any], default_mode: str = "repeat"
) -> RepeatSchedule | OnceSchedule:
    """Validate a wire descriptor into its tagged variant.

    Raises ScheduleParseError with a message an operator can act on.
    """
    data = dict(raw)
    data.setdefault("mode", default_mode)
    if data["mode"] == "once" and not data.get("runAt") and not data.get("run_at"):
        raise ScheduleParseError("Select both date and time for a one-time draw.")
    try:
        return _descriptor_adapter.validate_python(data)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        if data["mode"] == "once":
            raise ScheduleParseError("Invalid date or time for the one-time draw.") from exc
        raise ScheduleParseError(f"Invalid schedule: {first['msg']}") from exc


def serialize_descriptor(descriptor: RepeatSchedule | OnceSchedule) -> dict[str, Any]:
    return descriptor.model_dump(mode="json", by_alias=True, exclude_none=True)


def _pad(value: int | str) -> str:
    return f"{int(value):02d}"


def build_cron(descriptor: RepeatSchedule) -> str:
    """Derive a five-field cron expression from a repeat descriptor."""
    if descriptor.frequency == "minute":
        return "*/1 * * * *"
    if descriptor.frequency == "hour":
        return f"{_pad(descriptor.hour_minute or 0)} * * * *"
    hour, minute = (descriptor.time_of_day or "13:00").split(":")
    if descriptor.frequency == "day":
        return f"{_pad(minute)} {_pad(hour)} * * *"
    return f"{_pad(minute)} {_pad(hour)} * * {descriptor.day_of_week or 'FRI'}"


def _cron_fields(cron: str) -> list[str]:
    parts = cron.split()
    # Six fields are seconds-first (node-cron / Quartz layout)
    return parts[1:] if len(parts) == 6 else parts


def describe_cron(cron: str) -> RepeatSchedule | None:
    """Best-effort inverse of build_cron, for repeat games stored without a payload."""
    parts = _cron_fields(cron or "")
    if len(parts) < 5:
        return None
    minute, hour, day_of_month, _month, day_of_week = parts[:5]
    try:
        if minute.startswith("*/") or minute == "*":
            # Only an every-minute schedule has a descriptor form
            if minute in ("*/1", "*") and hour == day_of_month == day_of_week == "*":
                return RepeatSchedule(frequency="minute")
            return None
        if hour == "*" and day_of_month == "*" and day_of_week == "*":
            return RepeatSchedule(frequency="hour", hour_minute=minute)
        time_of_day = f"{_pad(hour)}:{_pad(minute)}"
        if day_of_week != "*":
            return RepeatSchedule(frequency="week", time_of_day=time_of_day, day_of_week=day_of_week)
        return RepeatSchedule(frequency="day", time_of_day=time_of_day)
    except (ValueError, PydanticValidationError):
        return None


def _croniter_expression(cron: str) -> str:
    parts = cron.split()
    if len(parts) == 6:
        # croniter wants seconds last
        return " ".join(parts[1:] + parts[:1])
    return " ".join(parts)


def validate_cron(cron: str) -> str:
    expression = (cron or "").strip()
    if len(expression.split()) not in (5, 6) or not croniter.is_valid(_croniter_expression(expression)):
        raise ScheduleParseError(f"Invalid cron expression: {cron!r}")
    return expression


def validate_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ScheduleParseError(f"Unknown timezone: {name!r}") from exc


def run_at_of(schedule: GameSchedule) -> datetime | None:
    """The instant a once schedule targets, or None when it cannot be read."""
    payload = schedule.payload or {}
    if not payload.get("runAt"):
        return None
    try:
        descriptor = parse_schedule_descriptor(payload, default_mode="once")
    except ScheduleParseError:
        return None
    if not isinstance(descriptor, OnceSchedule):
        return None
    return descriptor.run_at.astimezone(timezone.utc)


def is_completed(schedule: GameSchedule) -> bool:
    return bool((schedule.payload or {}).get("completedAt"))


def next_cron_time(cron: str, tz_name: str, now: datetime) -> datetime:
    """Next instant strictly after ``now`` matching ``cron`` in ``tz_name``, in UTC.

    Raises ScheduleParseError for a bad expression or zone.
    """
    expression = validate_cron(cron)
    tz = validate_timezone(tz_name)
    try:
        itr = croniter(_croniter_expression(expression), now.astimezone(tz))
        upcoming = itr.get_next(datetime)
    except (ValueError, KeyError) as exc:
        raise ScheduleParseError(f"Invalid cron expression: {cron!r}") from exc
    return upcoming.astimezone(timezone.utc)


def next_fire_time(game: Game | GameSchedule, now: datetime) -> datetime | None:
    """When this game draws next, or None if it never will (expired or invalid)."""
    schedule = as_schedule(game)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    if schedule.schedule_type == ScheduleType.ONCE:
        run_at = run_at_of(schedule)
        if run_at is None or is_completed(schedule) or run_at <= now:
            return None
        return run_at

    try:
        return next_cron_time(schedule.cron, schedule.timezone, now)
    except ScheduleParseError:
        return None
