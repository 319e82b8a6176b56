"""
Winner history: retention, reset, CSV export and gift corrections.
"""
import csv
import io
import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from fortune_wheel.core.exceptions import NotFoundError
from fortune_wheel.models.winner import FORMER_EMPLOYEE_NAME, Winner
from fortune_wheel.services.game_store import GameStore

logger = logging.getLogger(__name__)

EXPORT_HEADER = ("drawnAt", "firstName", "lastName", "gift", "trigger")


class WinnerHistoryManager:
    def __init__(self, db: AsyncSession, store: GameStore | None = None):
        self.store = store or GameStore(db)

    async def trim(self, slug: str, max_count: int) -> int:
        """Keep only the newest ``max_count`` winners. ``max_count <= 0`` keeps everything."""
        if max_count <= 0:
            return 0
        deleted = await self.store.delete_winners_beyond(slug, max_count)
        if deleted:
            logger.debug("Trimmed %d old winner(s) from %s", deleted, slug)
        return deleted

    async def reset(self, slug: str) -> tuple[int, int]:
        """Delete every winner of the game and reactivate its whole roster.

        Irreversible. Returns (winners deleted, employees reactivated).
        """
        await self.store.require_game(slug)
        deleted = await self.store.delete_winners_for_game(slug)
        reactivated = await self.store.activate_all_employees(slug)
        logger.warning(
            "Winner history reset for %s: %d winner(s) deleted, %d employee(s) reactivated",
            slug, deleted, reactivated,
        )
        return deleted, reactivated

    async def export(self, slug: str, limit: int) -> str:
        """CSV of the most recent ``limit`` winners, newest first."""
        await self.store.require_game(slug)
        winners = await self.store.get_recent_winners(slug, limit)
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\r\n")
        writer.writerow(EXPORT_HEADER)
        for winner in winners:
            writer.writerow([
                winner.drawn_at.isoformat(),
                winner.employee_first_name or FORMER_EMPLOYEE_NAME,
                winner.employee_last_name or "",
                winner.gift or "",
                winner.trigger.value,
            ])
        return buffer.getvalue()

    async def update_gift(self, winner_id: uuid.UUID, gift: str) -> Winner:
        winner = await self.store.get_winner(winner_id)
        return await self.store.update_winner_gift(winner, gift.strip())

    async def bulk_update_gifts(self, slug: str, updates: list[tuple[uuid.UUID, str]]) -> list[Winner]:
        """Apply several gift edits to one game's winners; all or nothing."""
        await self.store.require_game(slug)
        updated = []
        for winner_id, gift in updates:
            winner = await self.store.get_winner(winner_id)
            if winner.game_slug != slug:
                raise NotFoundError(f"Winner {winner_id} not found in {slug}")
            updated.append(await self.store.update_winner_gift(winner, gift.strip()))
        return updated
