from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Any


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # App
    APP_ENV: str = "development"
    APP_DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/wheel.db"

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def fix_database_url(cls, v: str) -> str:
        # Hosted Postgres gives postgres:// but asyncpg needs postgresql+asyncpg://
        if v.startswith("postgres://"):
            v = v.replace("postgres://", "postgresql+asyncpg://", 1)
        elif v.startswith("postgresql://") and "+asyncpg" not in v:
            v = v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    # Admin shared secret (Bearer token or X-Admin-Password header)
    ADMIN_PASSWORD: str = "password"

    # Draw schedule defaults
    DEFAULT_CRON: str = "0 13 * * FRI"
    DEFAULT_TIMEZONE: str = "America/Toronto"

    # Winner history
    WINNER_HISTORY_LIMIT: int = 40  # <= 0 keeps every winner
    REPEAT_COOLDOWN: int = 3
    RECENT_WINNERS_DEFAULT_LIMIT: int = 6
    RECENT_WINNERS_MAX_LIMIT: int = 100

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://localhost:4000"]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: Any) -> list[str]:
        if isinstance(v, str):
            import json
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(",")]
        return v


settings = Settings()
