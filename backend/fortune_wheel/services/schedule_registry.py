"""
Schedule registry: one asyncio task per game that sleeps until the next draw.

The registry is created by the application factory and stored on
``app.state.registry``. Every change to a game goes through ``schedule()``,
which cancels the game's current task before starting a new one, so a timer
built from an old config can never fire.

Repeat games loop forever (compute next cron tick, sleep, draw). Once games
sleep until ``runAt``, draw, stamp ``completedAt`` on the stored payload and
drop their handle. A once schedule whose instant has already passed is skipped,
never run late.
"""
import asyncio
import logging
import random
from collections.abc import Callable, Iterable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fortune_wheel.core.exceptions import NoEligibleEmployeesError, NotFoundError, ScheduleParseError
from fortune_wheel.db.base import utc_now
from fortune_wheel.models.game import Game, ScheduleType
from fortune_wheel.models.winner import DrawTrigger, Winner
from fortune_wheel.services.draw_engine import DrawEngine
from fortune_wheel.services.game_store import GameStore
from fortune_wheel.services.schedule_calculator import (
    GameSchedule,
    as_schedule,
    is_completed,
    load_schedule_payload,
    next_cron_time,
    next_fire_time,
    run_at_of,
)

logger = logging.getLogger(__name__)


class ScheduleRegistry:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cooldown: int | None = None,
        history_limit: int | None = None,
        clock: Callable[[], datetime] = utc_now,
        rng: random.Random | None = None,
    ):
        self._session_factory = session_factory
        self._cooldown = cooldown
        self._history_limit = history_limit
        self._clock = clock
        self._rng = rng
        self._handles: dict[str, asyncio.Task] = {}
        self._schedules: dict[str, GameSchedule] = {}
        # Draws outlive the timer that started them; shutdown waits for these
        self._inflight: set[asyncio.Task] = set()
        # One draw at a time per game, manual or scheduled
        self._draw_locks: dict[str, asyncio.Lock] = {}

    # ==================== Inspection ====================
    def is_scheduled(self, slug: str) -> bool:
        return slug in self._handles

    def scheduled_slugs(self) -> list[str]:
        return sorted(self._handles)

    def next_run(self, slug: str) -> datetime | None:
        schedule = self._schedules.get(slug)
        if schedule is None:
            return None
        return next_fire_time(schedule, self._clock())

    # ==================== Registration ====================
    def schedule(self, game: Game | GameSchedule) -> bool:
        """(Re)build the timer for a game. Returns True if a timer is now active."""
        schedule = as_schedule(game)
        self.unschedule(schedule.slug)
        if schedule.schedule_type == ScheduleType.ONCE:
            return self._schedule_once(schedule)
        return self._schedule_repeat(schedule)

    def unschedule(self, slug: str) -> bool:
        self._schedules.pop(slug, None)
        lock = self._draw_locks.get(slug)
        if lock is not None and not lock.locked():
            self._draw_locks.pop(slug)
        task = self._handles.pop(slug, None)
        if task is None:
            return False
        if task is not asyncio.current_task():
            task.cancel()
        return True

    def schedule_all(self, games: Iterable[Game | GameSchedule]) -> int:
        return sum(1 for game in games if self.schedule(game))

    async def restore(self) -> int:
        """Rebuild every timer from persisted games (process startup)."""
        async with self._session_factory() as db:
            games = await GameStore(db).get_games()
            schedules = [GameSchedule.from_game(game) for game in games]
        count = self.schedule_all(schedules)
        logger.info("Scheduled %d of %d game(s)", count, len(schedules))
        return count

    async def shutdown(self) -> None:
        tasks = list(self._handles.values())
        self._handles.clear()
        self._schedules.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await asyncio.gather(*self._inflight, return_exceptions=True)

    def _schedule_once(self, schedule: GameSchedule) -> bool:
        run_at = run_at_of(schedule)
        if run_at is None:
            logger.warning("Cannot schedule one-time draw for %s: invalid date", schedule.slug)
            return False
        if is_completed(schedule):
            logger.info("One-time draw for %s already ran; not rescheduling", schedule.slug)
            return False
        delay = (run_at - self._clock()).total_seconds()
        if delay <= 0:
            logger.warning("One-time draw for %s is in the past; skipping auto schedule", schedule.slug)
            return False
        self._register(schedule, self._run_once(schedule, delay))
        logger.info("One-time draw for %s scheduled at %s", schedule.slug, run_at.isoformat())
        return True

    def _schedule_repeat(self, schedule: GameSchedule) -> bool:
        try:
            first = next_cron_time(schedule.cron, schedule.timezone, self._clock())
        except ScheduleParseError as exc:
            logger.error("Cannot schedule draw for %s: %s", schedule.slug, exc.detail)
            return False
        self._register(schedule, self._run_repeat(schedule))
        logger.info(
            "Recurring draw for %s scheduled (%s %s), next at %s",
            schedule.slug, schedule.cron, schedule.timezone, first.isoformat(),
        )
        return True

    def _register(self, schedule: GameSchedule, coro) -> None:
        task = asyncio.create_task(coro, name=f"draw:{schedule.slug}")
        self._handles[schedule.slug] = task
        self._schedules[schedule.slug] = schedule

    # ==================== Timer bodies ====================
    async def _run_repeat(self, schedule: GameSchedule) -> None:
        last_fire: datetime | None = None
        while True:
            now = self._clock()
            # Sleep can wake a hair early; never compute from before the last tick
            fire_at = next_fire_time(schedule, max(now, last_fire) if last_fire else now)
            if fire_at is None:
                logger.warning(
                    "No upcoming draw for %s (%s %s); timer stopped",
                    schedule.slug, schedule.cron, schedule.timezone,
                )
                return
            await asyncio.sleep(max((fire_at - now).total_seconds(), 0))
            last_fire = fire_at
            # A reschedule during the draw cancels the loop, not the draw
            await self._shielded(self.run_scheduled_draw(schedule.slug))

    async def _run_once(self, schedule: GameSchedule, delay: float) -> None:
        try:
            await asyncio.sleep(delay)
            await self._shielded(self._fire_once(schedule))
        finally:
            if self._handles.get(schedule.slug) is asyncio.current_task():
                self._handles.pop(schedule.slug, None)
                self._schedules.pop(schedule.slug, None)

    async def _shielded(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        await asyncio.shield(task)

    async def _fire_once(self, schedule: GameSchedule) -> None:
        await self.run_scheduled_draw(schedule.slug)
        await self._mark_completed(schedule)

    async def _mark_completed(self, schedule: GameSchedule) -> None:
        try:
            async with self._session_factory() as db:
                game = await GameStore(db).get_game(schedule.slug)
                if game is None or game.schedule_type != ScheduleType.ONCE:
                    return
                payload = load_schedule_payload(game.schedule_payload) or {}
                if payload.get("runAt") != (schedule.payload or {}).get("runAt"):
                    # Rescheduled while the draw ran; the new schedule is not done
                    return
                game.schedule_payload = {**payload, "completedAt": self._clock().isoformat()}
                await db.commit()
        except Exception:
            logger.exception("Failed to mark one-time draw for %s as completed", schedule.slug)

    # ==================== Draw ====================
    def draw_lock(self, slug: str) -> asyncio.Lock:
        lock = self._draw_locks.get(slug)
        if lock is None:
            lock = self._draw_locks[slug] = asyncio.Lock()
        return lock

    async def draw(self, db: AsyncSession, slug: str, trigger: DrawTrigger) -> Winner:
        """Draw and commit under the game's draw lock.

        The lock covers roster read, insert and commit, so two draws for one game
        never see the same roster or sequence. Draw errors propagate.
        """
        async with self.draw_lock(slug):
            engine = DrawEngine(
                db,
                cooldown=self._cooldown,
                history_limit=self._history_limit,
                rng=self._rng,
            )
            try:
                winner = await engine.draw(slug, trigger)
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        return winner

    async def run_scheduled_draw(self, slug: str) -> Winner | None:
        """Run one scheduled draw in its own transaction. Never raises."""
        try:
            async with self._session_factory() as db:
                return await self.draw(db, slug, DrawTrigger.SCHEDULED)
        except NoEligibleEmployeesError as exc:
            logger.warning("Skipping scheduled draw for %s: %s", slug, exc.detail)
        except NotFoundError as exc:
            logger.warning("Skipping scheduled draw for %s: %s", slug, exc.detail)
        except Exception:
            logger.exception("Scheduled draw failed for %s", slug)
        return None
