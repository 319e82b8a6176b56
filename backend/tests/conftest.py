import asyncio
import time
from collections.abc import AsyncIterator, Awaitable, Callable

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from fortune_wheel.config import settings
from fortune_wheel.db.base import Base
from fortune_wheel.db.engine import build_engine
from fortune_wheel.db.session import get_db
from fortune_wheel.main import create_app
from fortune_wheel.models.employee import Employee
from fortune_wheel.models.game import Game, ScheduleType
from fortune_wheel.services.schedule_registry import ScheduleRegistry

# Use SQLite for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"

# Fresh connection per checkout; each test runs on its own event loop
engine = build_engine(TEST_DATABASE_URL, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session() -> AsyncIterator[AsyncSession]:
    # Import all models
    import fortune_wheel.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def registry(db_session: AsyncSession) -> AsyncIterator[ScheduleRegistry]:
    registry = ScheduleRegistry(TestSessionLocal, cooldown=3, history_limit=40)
    yield registry
    await registry.shutdown()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession, registry: ScheduleRegistry) -> AsyncIterator[AsyncClient]:
    app = create_app(engine=engine, session_factory=TestSessionLocal, registry=registry)

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def auth_headers() -> dict:
    return {"Authorization": f"Bearer {settings.ADMIN_PASSWORD}"}


async def make_game(
    db: AsyncSession,
    slug: str,
    employees: list[str] | None = None,
    **overrides,
) -> Game:
    """Insert a game (weekly Friday 13:00 by default) and a roster of first names."""
    fields = {
        "slug": slug,
        "name": slug,
        "cron": "0 13 * * FRI",
        "timezone": "America/Toronto",
        "schedule_type": ScheduleType.REPEAT,
        "schedule_payload": {"mode": "repeat", "frequency": "week", "timeOfDay": "13:00", "dayOfWeek": "FRI"},
        "allow_repeat_winners": False,
        "gifts": "",
    }
    fields.update(overrides)
    game = Game(**fields)
    db.add(game)
    await db.flush()
    for name in employees or []:
        db.add(Employee(game_slug=slug, first_name=name))
    await db.commit()
    await db.refresh(game)
    return game


async def wait_for(predicate: Callable[[], Awaitable[bool]], timeout: float = 3.0, interval: float = 0.05) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if await predicate():
            return True
        await asyncio.sleep(interval)
    return await predicate()
