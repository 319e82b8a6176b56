"""
Draw engine: picks one winner for a game.

Eligibility:
  1. Base roster = active employees, or everyone when the game allows repeat winners.
  2. Cooldown = the employees behind the last REPEAT_COOLDOWN winners are left out,
     unless that leaves nobody, in which case the whole base roster is used.
  3. Uniform random choice from what remains.

The gift rotates through the game's gift list by draw sequence number.
"""
import logging
import random
from typing import Sequence, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from fortune_wheel.config import settings
from fortune_wheel.core.exceptions import NoEligibleEmployeesError
from fortune_wheel.models.employee import Employee
from fortune_wheel.models.game import Game
from fortune_wheel.models.winner import FORMER_EMPLOYEE_NAME, DrawTrigger, Winner
from fortune_wheel.schemas.game import split_gifts
from fortune_wheel.services.game_store import GameStore
from fortune_wheel.services.winner_history import WinnerHistoryManager

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Employee)


def base_roster(game: Game, employees: Sequence[T]) -> list[T]:
    if game.allow_repeat_winners:
        return list(employees)
    return [emp for emp in employees if emp.active is not False]


def apply_cooldown(roster: Sequence[T], recent_ids: set[int]) -> list[T]:
    """Drop recent winners from the pool; fall back to the full roster if none would remain."""
    pool = [emp for emp in roster if emp.id not in recent_ids]
    return pool if pool else list(roster)


def gift_for_sequence(gifts: list[str], sequence: int) -> str:
    if not gifts:
        return ""
    return gifts[sequence % len(gifts)]


class DrawEngine:
    def __init__(
        self,
        db: AsyncSession,
        cooldown: int | None = None,
        history_limit: int | None = None,
        rng: random.Random | None = None,
    ):
        self.store = GameStore(db)
        self.history = WinnerHistoryManager(db, self.store)
        self.cooldown = settings.REPEAT_COOLDOWN if cooldown is None else cooldown
        self.history_limit = settings.WINNER_HISTORY_LIMIT if history_limit is None else history_limit
        self.rng = rng or random.Random()

    async def eligible_pool(self, game: Game) -> list[Employee]:
        employees = await self.store.get_employees(game.slug)
        roster = base_roster(game, employees)
        if not roster:
            raise NoEligibleEmployeesError(f"No employees configured for {game.slug}")
        recent_ids = set(await self.store.get_recent_winner_ids(game.slug, self.cooldown))
        return apply_cooldown(roster, recent_ids)

    async def draw(self, slug: str, trigger: DrawTrigger = DrawTrigger.MANUAL) -> Winner:
        game = await self.store.require_game(slug, for_update=True)
        pool = await self.eligible_pool(game)
        employee = self.rng.choice(pool)

        sequence = await self.store.get_winner_sequence(slug)
        gift = gift_for_sequence(split_gifts(game.gifts), sequence)

        winner = await self.store.insert_winner({
            "game_slug": slug,
            "employee_id": employee.id,
            "employee_first_name": employee.first_name or FORMER_EMPLOYEE_NAME,
            "employee_last_name": employee.last_name or "",
            "employee_avatar": employee.avatar or "",
            "trigger": trigger,
            "gift": gift,
            "sequence": sequence + 1,
        })

        if not game.allow_repeat_winners:
            await self.store.deactivate_employee(employee)

        await self.history.trim(slug, self.history_limit)

        logger.info(
            "Drew %s %s for %s (%s draw #%d, gift=%r)",
            employee.first_name, employee.last_name, slug, trigger.value, sequence + 1, gift,
        )
        return winner
