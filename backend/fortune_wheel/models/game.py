"""
Game model: one independently scheduled drawing context, keyed by slug.

Repeat games fire on ``cron`` in ``timezone``. Once games fire at
``schedule_payload["runAt"]``; their ``cron`` column holds a placeholder that is
never interpreted.
"""
import enum
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Boolean, Enum, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fortune_wheel.db.base import Base, TimestampMixin

if TYPE_CHECKING:
    from fortune_wheel.models.employee import Employee
    from fortune_wheel.models.winner import Winner


RUN_ONCE_PLACEHOLDER_CRON = "0 0 * * *"


class ScheduleType(str, enum.Enum):
    REPEAT = "repeat"
    ONCE = "once"


class Game(TimestampMixin, Base):
    __tablename__ = "games"

    slug: Mapped[str] = mapped_column(String(100), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    cron: Mapped[str] = mapped_column(String(100), nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False)
    schedule_type: Mapped[ScheduleType] = mapped_column(
        Enum(
            ScheduleType,
            name="schedule_type",
            native_enum=False,
            values_callable=lambda e: [member.value for member in e],
        ),
        default=ScheduleType.REPEAT,
        nullable=False,
    )
    # Wire-shaped descriptor: {"mode": "repeat", "frequency": ...} or {"mode": "once", "runAt": ...}
    schedule_payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    allow_repeat_winners: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # Comma-separated, rotated by draw sequence
    gifts: Mapped[str] = mapped_column(Text, default="", nullable=False)

    employees: Mapped[list["Employee"]] = relationship(
        "Employee", back_populates="game", cascade="all, delete-orphan", passive_deletes=True, lazy="noload"
    )
    winners: Mapped[list["Winner"]] = relationship(
        "Winner", back_populates="game", cascade="all, delete-orphan", passive_deletes=True, lazy="noload"
    )
