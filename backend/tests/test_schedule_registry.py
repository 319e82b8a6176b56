import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import TestSessionLocal, make_game, wait_for
from fortune_wheel.core.exceptions import NoEligibleEmployeesError
from fortune_wheel.db.base import utc_now
from fortune_wheel.models.game import RUN_ONCE_PLACEHOLDER_CRON, ScheduleType
from fortune_wheel.models.winner import DrawTrigger, Winner
from fortune_wheel.services.game_store import GameStore
from fortune_wheel.services.schedule_calculator import GameSchedule, next_fire_time
from fortune_wheel.services.schedule_registry import ScheduleRegistry


async def winner_count(slug: str) -> int:
    async with TestSessionLocal() as db:
        result = await db.execute(select(func.count(Winner.id)).where(Winner.game_slug == slug))
        return int(result.scalar() or 0)


def once_payload(run_at) -> dict:
    return {"mode": "once", "runAt": run_at.isoformat()}


@pytest.mark.asyncio
async def test_once_draw_fires_and_completes(db_session: AsyncSession, registry: ScheduleRegistry):
    run_at = utc_now() + timedelta(milliseconds=300)
    game = await make_game(
        db_session,
        "launch",
        employees=["Ada", "Grace"],
        schedule_type=ScheduleType.ONCE,
        cron=RUN_ONCE_PLACEHOLDER_CRON,
        schedule_payload=once_payload(run_at),
    )

    assert registry.schedule(game) is True
    assert registry.next_run("launch") == run_at

    async def finished() -> bool:
        return not registry.is_scheduled("launch")

    assert await wait_for(finished)
    assert registry.next_run("launch") is None

    async with TestSessionLocal() as db:
        store = GameStore(db)
        [winner] = await store.get_recent_winners("launch", 5)
        assert winner.trigger == DrawTrigger.SCHEDULED
        stored = await store.require_game("launch")
        assert stored.schedule_payload["completedAt"]
        assert next_fire_time(stored, utc_now()) is None


@pytest.mark.asyncio
async def test_once_in_the_past_is_skipped(db_session: AsyncSession, registry: ScheduleRegistry):
    game = await make_game(
        db_session,
        "late",
        employees=["Ada"],
        schedule_type=ScheduleType.ONCE,
        cron=RUN_ONCE_PLACEHOLDER_CRON,
        schedule_payload=once_payload(utc_now() - timedelta(minutes=5)),
    )

    assert registry.schedule(game) is False
    assert not registry.is_scheduled("late")
    await asyncio.sleep(0.2)
    assert await winner_count("late") == 0


@pytest.mark.asyncio
async def test_completed_once_is_not_rescheduled(db_session: AsyncSession, registry: ScheduleRegistry):
    payload = once_payload(utc_now() + timedelta(hours=1))
    payload["completedAt"] = utc_now().isoformat()
    game = await make_game(
        db_session,
        "done",
        employees=["Ada"],
        schedule_type=ScheduleType.ONCE,
        cron=RUN_ONCE_PLACEHOLDER_CRON,
        schedule_payload=payload,
    )
    assert registry.schedule(game) is False


@pytest.mark.asyncio
async def test_invalid_cron_is_not_scheduled(db_session: AsyncSession, registry: ScheduleRegistry):
    schedule = GameSchedule(slug="bad", schedule_type=ScheduleType.REPEAT, cron="whenever", timezone="UTC")
    assert registry.schedule(schedule) is False
    assert registry.scheduled_slugs() == []


@pytest.mark.asyncio
async def test_repeat_draw_fires_every_second(db_session: AsyncSession, registry: ScheduleRegistry):
    game = await make_game(
        db_session, "tick", employees=["A", "B", "C"], allow_repeat_winners=True, cron="* * * * * *", timezone="UTC"
    )
    assert registry.schedule(game) is True

    async def drawn() -> bool:
        return await winner_count("tick") >= 1

    assert await wait_for(drawn, timeout=4.0)
    assert registry.is_scheduled("tick")
    registry.unschedule("tick")

    async with TestSessionLocal() as db:
        [winner, *_] = await GameStore(db).get_recent_winners("tick", 5)
        assert winner.trigger == DrawTrigger.SCHEDULED


@pytest.mark.asyncio
async def test_reschedule_replaces_previous_timer(db_session: AsyncSession, registry: ScheduleRegistry):
    await make_game(db_session, "swap", employees=["A", "B"], allow_repeat_winners=True, timezone="UTC")
    every_second = GameSchedule(slug="swap", schedule_type=ScheduleType.REPEAT, cron="* * * * * *", timezone="UTC")
    yearly = GameSchedule(slug="swap", schedule_type=ScheduleType.REPEAT, cron="0 0 1 1 *", timezone="UTC")

    assert registry.schedule(every_second) is True
    assert registry.schedule(yearly) is True

    await asyncio.sleep(1.5)
    assert await winner_count("swap") == 0
    assert registry.scheduled_slugs() == ["swap"]
    upcoming = registry.next_run("swap")
    assert (upcoming.month, upcoming.day, upcoming.hour, upcoming.minute) == (1, 1, 0, 0)


@pytest.mark.asyncio
async def test_scheduled_draw_without_employees_is_skipped(db_session: AsyncSession, registry: ScheduleRegistry):
    await make_game(db_session, "nobody")
    assert await registry.run_scheduled_draw("nobody") is None
    assert await registry.run_scheduled_draw("missing") is None


@pytest.mark.asyncio
async def test_restore_schedules_persisted_games(db_session: AsyncSession, registry: ScheduleRegistry):
    await make_game(db_session, "weekly", employees=["A"])
    await make_game(
        db_session,
        "expired",
        schedule_type=ScheduleType.ONCE,
        cron=RUN_ONCE_PLACEHOLDER_CRON,
        schedule_payload=once_payload(utc_now() - timedelta(days=1)),
    )

    assert await registry.restore() == 1
    assert registry.scheduled_slugs() == ["weekly"]

    await registry.shutdown()
    assert registry.scheduled_slugs() == []


@pytest.mark.asyncio
async def test_concurrent_draws_never_share_a_winner(db_session: AsyncSession, registry: ScheduleRegistry):
    await make_game(db_session, "solo", employees=["A"], gifts="X, Y")

    async def manual_spin():
        async with TestSessionLocal() as db:
            try:
                return await registry.draw(db, "solo", DrawTrigger.MANUAL)
            except NoEligibleEmployeesError:
                return None

    results = await asyncio.gather(manual_spin(), registry.run_scheduled_draw("solo"))

    assert sum(result is not None for result in results) == 1
    async with TestSessionLocal() as db:
        winners = await GameStore(db).get_recent_winners("solo", 5)
    assert [(w.employee_first_name, w.sequence, w.gift) for w in winners] == [("A", 1, "X")]


@pytest.mark.asyncio
async def test_concurrent_draws_keep_sequence_and_gifts(db_session: AsyncSession, registry: ScheduleRegistry):
    await make_game(db_session, "team", employees=["A", "B", "C", "D"], gifts="X, Y")

    results = await asyncio.gather(*(registry.run_scheduled_draw("team") for _ in range(4)))

    assert all(result is not None for result in results)
    async with TestSessionLocal() as db:
        winners = await GameStore(db).get_recent_winners("team", 10)
    assert sorted(w.sequence for w in winners) == [1, 2, 3, 4]
    assert sorted(w.employee_first_name for w in winners) == ["A", "B", "C", "D"]
    assert {w.sequence: w.gift for w in winners} == {1: "X", 2: "Y", 3: "X", 4: "Y"}
