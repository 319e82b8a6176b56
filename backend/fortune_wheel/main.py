import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator
from pathlib import Path

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from fortune_wheel.config import settings
from fortune_wheel.core.middleware import setup_middleware
from fortune_wheel.services.schedule_registry import ScheduleRegistry

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(level=(level or settings.LOG_LEVEL).upper(), format=LOG_FORMAT)


def _ensure_sqlite_dir(database: str | None) -> None:
    if database and database != ":memory:":
        Path(database).parent.mkdir(parents=True, exist_ok=True)


async def ensure_tables(engine: AsyncEngine) -> None:
    """Create DB tables if they don't exist yet."""
    from fortune_wheel.db.base import Base
    import fortune_wheel.models  # noqa: F401

    if engine.url.get_backend_name() == "sqlite":
        _ensure_sqlite_dir(engine.url.database)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # Startup: create tables, then rebuild every game's timer from storage
    await ensure_tables(app.state.engine)
    await app.state.registry.restore()
    logger.info("Draw scheduler started")

    yield

    await app.state.registry.shutdown()
    logger.info("Draw scheduler stopped")


def create_app(
    engine: AsyncEngine | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    registry: ScheduleRegistry | None = None,
) -> FastAPI:
    if engine is None or session_factory is None:
        from fortune_wheel.db import engine as db_engine

        engine = engine or db_engine.engine
        session_factory = session_factory or db_engine.async_session_factory

    app = FastAPI(
        title="Fortune Wheel API",
        version="0.1.0",
        description="Scheduled prize-wheel draws for employee rosters",
        debug=settings.APP_DEBUG,
        lifespan=lifespan,
    )
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.registry = registry or ScheduleRegistry(
        session_factory,
        cooldown=settings.REPEAT_COOLDOWN,
        history_limit=settings.WINNER_HISTORY_LIMIT,
    )

    setup_middleware(app)

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "scheduled": len(app.state.registry.scheduled_slugs())}

    # Register API routers
    from fortune_wheel.api.v1 import router as api_v1_router
    app.include_router(api_v1_router, prefix="/api/v1")

    return app


configure_logging()
app = create_app()
