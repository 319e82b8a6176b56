"""Game store: persistence for games, rosters and winner history.

Writes only flush. The caller owns the transaction, so a draw (insert winner,
deactivate employee, trim history) commits or rolls back as one unit.
"""
import uuid
from typing import Any, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fortune_wheel.core.exceptions import NotFoundError
from fortune_wheel.models.employee import Employee
from fortune_wheel.models.game import Game
from fortune_wheel.models.winner import Winner


class GameStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== Games ====================
    async def get_games(self) -> Sequence[Game]:
        result = await self.db.execute(select(Game).order_by(Game.created_at, Game.slug))
        return result.scalars().all()

    async def get_game(self, slug: str, for_update: bool = False) -> Game | None:
        query = select(Game).where(Game.slug == slug)
        if for_update:
            # Row lock on PostgreSQL; SQLite renders no FOR UPDATE
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def require_game(self, slug: str, for_update: bool = False) -> Game:
        game = await self.get_game(slug, for_update=for_update)
        if not game:
            raise NotFoundError(f"Game {slug} not found")
        return game

    async def create_game(self, fields: dict[str, Any]) -> Game:
        game = Game(**fields)
        self.db.add(game)
        await self.db.flush()
        await self.db.refresh(game)
        return game

    async def update_game(self, slug: str, fields: dict[str, Any]) -> Game:
        game = await self.require_game(slug)
        for field, value in fields.items():
            setattr(game, field, value)
        await self.db.flush()
        await self.db.refresh(game)
        return game

    async def delete_game(self, slug: str) -> None:
        game = await self.require_game(slug)
        await self.db.delete(game)
        await self.db.flush()

    # ==================== Employees ====================
    async def get_employees(self, slug: str) -> Sequence[Employee]:
        result = await self.db.execute(
            select(Employee).where(Employee.game_slug == slug).order_by(Employee.created_at, Employee.id)
        )
        return result.scalars().all()

    async def get_employee(self, slug: str, employee_id: int) -> Employee:
        result = await self.db.execute(
            select(Employee).where(Employee.game_slug == slug, Employee.id == employee_id)
        )
        employee = result.scalar_one_or_none()
        if not employee:
            raise NotFoundError(f"Employee {employee_id} not found in {slug}")
        return employee

    async def create_employee(self, slug: str, fields: dict[str, Any]) -> Employee:
        employee = Employee(game_slug=slug, **fields)
        self.db.add(employee)
        await self.db.flush()
        await self.db.refresh(employee)
        return employee

    async def update_employee(self, slug: str, employee_id: int, fields: dict[str, Any]) -> Employee:
        employee = await self.get_employee(slug, employee_id)
        for field, value in fields.items():
            setattr(employee, field, value)
        await self.db.flush()
        await self.db.refresh(employee)
        return employee

    async def delete_employee(self, slug: str, employee_id: int) -> None:
        employee = await self.get_employee(slug, employee_id)
        await self.db.delete(employee)
        await self.db.flush()

    async def replace_employees(self, slug: str, entries: list[dict[str, str]]) -> Sequence[Employee]:
        await self.db.execute(delete(Employee).where(Employee.game_slug == slug))
        for entry in entries:
            self.db.add(
                Employee(
                    game_slug=slug,
                    first_name=entry["first_name"],
                    last_name=entry.get("last_name", ""),
                    active=True,
                )
            )
        await self.db.flush()
        return await self.get_employees(slug)

    async def activate_all_employees(self, slug: str) -> int:
        result = await self.db.execute(
            select(Employee).where(Employee.game_slug == slug, Employee.active.is_(False))
        )
        inactive = result.scalars().all()
        for employee in inactive:
            employee.active = True
        await self.db.flush()
        return len(inactive)

    async def deactivate_employee(self, employee: Employee) -> None:
        employee.active = False
        await self.db.flush()

    # ==================== Winners ====================
    def _recent_winners_query(self, slug: str):
        return (
            select(Winner)
            .where(Winner.game_slug == slug)
            .order_by(Winner.drawn_at.desc(), Winner.sequence.desc())
        )

    async def get_recent_winners(self, slug: str, limit: int) -> Sequence[Winner]:
        result = await self.db.execute(self._recent_winners_query(slug).limit(limit))
        return result.scalars().all()

    async def get_recent_winner_ids(self, slug: str, cooldown_limit: int) -> list[int]:
        if cooldown_limit <= 0:
            return []
        winners = await self.get_recent_winners(slug, cooldown_limit)
        return [w.employee_id for w in winners if w.employee_id is not None]

    async def insert_winner(self, fields: dict[str, Any]) -> Winner:
        winner = Winner(**fields)
        self.db.add(winner)
        await self.db.flush()
        await self.db.refresh(winner)
        return winner

    async def get_winner(self, winner_id: uuid.UUID) -> Winner:
        result = await self.db.execute(select(Winner).where(Winner.id == winner_id))
        winner = result.scalar_one_or_none()
        if not winner:
            raise NotFoundError(f"Winner {winner_id} not found")
        return winner

    async def get_winner_sequence(self, slug: str) -> int:
        """Highest draw number recorded for the game; 0 before the first draw."""
        result = await self.db.execute(
            select(func.coalesce(func.max(Winner.sequence), 0)).where(Winner.game_slug == slug)
        )
        return int(result.scalar() or 0)

    async def count_winners(self, slug: str) -> int:
        result = await self.db.execute(select(func.count(Winner.id)).where(Winner.game_slug == slug))
        return int(result.scalar() or 0)

    async def delete_winners_for_game(self, slug: str) -> int:
        count = await self.count_winners(slug)
        await self.db.execute(
            delete(Winner).where(Winner.game_slug == slug).execution_options(synchronize_session="fetch")
        )
        await self.db.flush()
        return count

    async def delete_winners_beyond(self, slug: str, keep: int) -> int:
        """Delete every winner of the game except the ``keep`` most recent."""
        count = await self.count_winners(slug)
        if count <= keep:
            return 0
        keep_ids = select(Winner.id).where(Winner.game_slug == slug).order_by(
            Winner.drawn_at.desc(), Winner.sequence.desc()
        ).limit(keep)
        await self.db.execute(
            delete(Winner)
            .where(Winner.game_slug == slug, Winner.id.not_in(keep_ids))
            .execution_options(synchronize_session="fetch")
        )
        await self.db.flush()
        return count - keep

    async def update_winner_gift(self, winner: Winner, gift: str) -> Winner:
        winner.gift = gift
        await self.db.flush()
        await self.db.refresh(winner)
        return winner
