"""Game administration: create, reconfigure and delete games, keeping timers in step."""
import logging
import re
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from fortune_wheel.config import settings
from fortune_wheel.core.exceptions import ConflictError, ValidationError
from fortune_wheel.models.game import RUN_ONCE_PLACEHOLDER_CRON, Game, ScheduleType
from fortune_wheel.schemas.game import GameCreate, GameUpdate, split_gifts
from fortune_wheel.schemas.schedule import OnceSchedule, RepeatSchedule
from fortune_wheel.services.game_store import GameStore
from fortune_wheel.services.schedule_calculator import (
    build_cron,
    describe_cron,
    load_schedule_payload,
    next_fire_time,
    parse_schedule_descriptor,
    serialize_descriptor,
    validate_cron,
    validate_timezone,
)
from fortune_wheel.services.schedule_registry import ScheduleRegistry

logger = logging.getLogger(__name__)

SLUG_RE = re.compile(r"^[a-z0-9][a-z0-9_-]*$")
SCHEDULE_FIELDS = {"schedule_type", "cron", "timezone", "schedule_payload"}


def _requested_type(data: GameCreate | GameUpdate, current: Game | None) -> ScheduleType:
    if data.schedule_type is not None:
        return data.schedule_type
    mode = (data.schedule_payload or {}).get("mode")
    if mode in (ScheduleType.REPEAT.value, ScheduleType.ONCE.value):
        return ScheduleType(mode)
    if current is not None:
        return current.schedule_type
    return ScheduleType.REPEAT


def resolve_schedule_fields(data: GameCreate | GameUpdate, current: Game | None = None) -> dict[str, Any]:
    """Turn schedule input into the stored columns (cron, timezone, type, payload).

    Raises ValidationError (ScheduleParseError) for anything that would not schedule.
    """
    schedule_type = _requested_type(data, current)
    timezone_name = data.timezone or (current.timezone if current else None) or settings.DEFAULT_TIMEZONE
    validate_timezone(timezone_name)

    if schedule_type == ScheduleType.ONCE:
        if data.schedule_payload is not None:
            descriptor = parse_schedule_descriptor(data.schedule_payload, default_mode="once")
            if not isinstance(descriptor, OnceSchedule):
                raise ValidationError("Schedule payload mode does not match scheduleType 'once'")
            # A new run time starts a fresh, not-yet-completed schedule
            payload = serialize_descriptor(descriptor.model_copy(update={"completed_at": None}))
        elif current is not None and current.schedule_type == ScheduleType.ONCE and current.schedule_payload:
            payload = load_schedule_payload(current.schedule_payload)
        else:
            raise ValidationError("Select both date and time for a one-time draw.")
        return {
            "schedule_type": ScheduleType.ONCE,
            "cron": RUN_ONCE_PLACEHOLDER_CRON,
            "timezone": timezone_name,
            "schedule_payload": payload,
        }

    descriptor = None
    if data.schedule_payload is not None:
        descriptor = parse_schedule_descriptor(data.schedule_payload, default_mode="repeat")
        if not isinstance(descriptor, RepeatSchedule):
            raise ValidationError("Schedule payload mode does not match scheduleType 'repeat'")

    if data.cron:
        cron = data.cron
    elif descriptor is not None:
        cron = build_cron(descriptor)
    elif current is not None and current.schedule_type == ScheduleType.REPEAT:
        cron = current.cron
    else:
        cron = settings.DEFAULT_CRON
    cron = validate_cron(cron)

    if descriptor is None:
        descriptor = describe_cron(cron)
    return {
        "schedule_type": ScheduleType.REPEAT,
        "cron": cron,
        "timezone": timezone_name,
        "schedule_payload": serialize_descriptor(descriptor) if descriptor else None,
    }


async def create_game(db: AsyncSession, data: GameCreate, registry: ScheduleRegistry) -> Game:
    slug = data.slug.strip().lower()
    if not SLUG_RE.match(slug):
        raise ValidationError("slug may only contain letters, digits, '-' and '_'")

    store = GameStore(db)
    if await store.get_game(slug):
        raise ConflictError(f"Game '{slug}' already exists")

    fields = resolve_schedule_fields(data)
    fields.update(
        slug=slug,
        name=slug,
        allow_repeat_winners=data.allow_repeat_winners,
        gifts=",".join(split_gifts(data.gifts)),
    )
    game = await store.create_game(fields)
    await db.commit()

    registry.schedule(game)
    logger.info("Created game %s (%s)", slug, game.schedule_type.value)
    return game


async def update_game_config(
    db: AsyncSession, slug: str, data: GameUpdate, registry: ScheduleRegistry
) -> Game:
    store = GameStore(db)
    game = await store.require_game(slug)

    fields: dict[str, Any] = {}
    if data.model_fields_set & SCHEDULE_FIELDS:
        fields.update(resolve_schedule_fields(data, current=game))
    if "allow_repeat_winners" in data.model_fields_set and data.allow_repeat_winners is not None:
        fields["allow_repeat_winners"] = data.allow_repeat_winners
    if "gifts" in data.model_fields_set:
        fields["gifts"] = ",".join(split_gifts(data.gifts))

    game = await store.update_game(slug, fields)
    await db.commit()

    # Rebuilt on every edit, schedule fields or not
    registry.schedule(game)
    logger.info("Updated game %s: %s", slug, ", ".join(sorted(fields)) or "no changes")
    return game


async def delete_game(db: AsyncSession, slug: str, registry: ScheduleRegistry) -> None:
    await GameStore(db).delete_game(slug)
    await db.commit()
    registry.unschedule(slug)
    logger.info("Deleted game %s", slug)


async def get_game_config(db: AsyncSession, slug: str, now: datetime) -> dict[str, Any]:
    game = await GameStore(db).require_game(slug)
    next_draw_at = next_fire_time(game, now)
    if next_draw_at is None and game.schedule_type == ScheduleType.REPEAT:
        logger.error("Unable to compute next draw for %s (%s %s)", slug, game.cron, game.timezone)
    return {
        "cron": game.cron,
        "timezone": game.timezone or settings.DEFAULT_TIMEZONE,
        "schedule_type": game.schedule_type,
        "schedule_payload": load_schedule_payload(game.schedule_payload),
        "next_draw_at": next_draw_at,
        "allow_repeat_winners": game.allow_repeat_winners,
        "gifts": split_gifts(game.gifts),
    }
