# config.py
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration, read from EXPENSE_TRACKER_* variables or .env."""

    model_config = SettingsConfigDict(
        env_prefix="EXPENSE_TRACKER_", env_file=".env", extra="ignore"
    )

    database_url: str = "sqlite:///./expenses.db"
    secret_key: str = "change-me"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = Field(default=30, gt=0)
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:3001"]
    notifier_queue_size: int = Field(default=100, gt=0)
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000


@lru_cache
def get_settings() -> Settings:
    return Settings()
