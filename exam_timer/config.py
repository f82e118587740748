from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # Application
    log_level: str = "INFO"

    # Attempt store
    database_url: str = "sqlite+aiosqlite:///./exam_timer.db"

    # Timer store
    timer_store_backend: Literal["REDIS", "MEMORY"] = "REDIS"
    redis_url: str = "redis://localhost:6379/0"
    store_timeout: float = 5.0
    store_probe_interval: float = 5.0

    # Scheduler
    scheduler_enabled: bool = True
    timer_poll_interval: float = Field(default=10.0, ge=1.0)
    timer_ttl_margin: int = Field(default=3600, ge=0)


# Global settings instance
settings = Settings()
