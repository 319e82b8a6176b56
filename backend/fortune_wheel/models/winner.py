"""
Winner model: one row per draw.

The employee's name and avatar are copied at draw time so history survives
roster edits and deletions (``employee_id`` is nulled when the employee goes).
"""
import enum
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fortune_wheel.db.base import Base, UTCDateTime, UUIDPrimaryKeyMixin, utc_now

if TYPE_CHECKING:
    from fortune_wheel.models.game import Game


FORMER_EMPLOYEE_NAME = "Former Employee"


class DrawTrigger(str, enum.Enum):
    MANUAL = "manual"
    SCHEDULED = "scheduled"


class Winner(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "winners"

    game_slug: Mapped[str] = mapped_column(
        String(100), ForeignKey("games.slug", ondelete="CASCADE"), nullable=False, index=True
    )
    employee_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True
    )
    employee_first_name: Mapped[str] = mapped_column(
        String(255), default=FORMER_EMPLOYEE_NAME, nullable=False
    )
    employee_last_name: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    employee_avatar: Mapped[str] = mapped_column(Text, default="", nullable=False)
    drawn_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utc_now, nullable=False, index=True)
    trigger: Mapped[DrawTrigger] = mapped_column(
        Enum(
            DrawTrigger,
            name="draw_trigger",
            native_enum=False,
            values_callable=lambda e: [member.value for member in e],
        ),
        nullable=False,
    )
    gift: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    # Per-game draw number, 1-based; drives gift rotation
    sequence: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    game: Mapped["Game"] = relationship("Game", back_populates="winners", lazy="noload")
