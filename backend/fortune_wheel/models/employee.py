from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fortune_wheel.db.base import Base, TimestampMixin

if TYPE_CHECKING:
    from fortune_wheel.models.game import Game


class Employee(TimestampMixin, Base):
    __tablename__ = "employees"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    game_slug: Mapped[str] = mapped_column(
        String(100), ForeignKey("games.slug", ondelete="CASCADE"), nullable=False, index=True
    )
    first_name: Mapped[str] = mapped_column(String(255), nullable=False)
    last_name: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    role: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    avatar: Mapped[str] = mapped_column(Text, default="", nullable=False)
    # Cleared after a win when the game disallows repeat winners
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    game: Mapped["Game"] = relationship("Game", back_populates="employees", lazy="noload")
