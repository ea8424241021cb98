"""Application configuration and settings."""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Fairseat"
    debug: bool = False
    api_prefix: str = "/api"
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite+aiosqlite:///./fairseat.db"
    sql_echo: bool = False

    # Ledger window: hour (UTC) at which the business day rolls over
    day_start_hour: int = Field(default=0, ge=0, le=23)

    # Upper bound on a single seating commit
    commit_timeout_seconds: float = 10.0

    # Waitlist collaborator settings
    urgent_wait_minutes: Optional[int] = None
    suggestion_limit: int = 3

    class Config:
        env_prefix = "FAIRSEAT_"
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
