"""Centralized application configuration using Pydantic settings."""
from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven configuration shared across services."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    database_url: str = Field(
        default="sqlite:///./office_manager.db",
        description="SQLAlchemy database URL. Defaults to local SQLite for development.",
    )
    run_db_migrations: bool = Field(
        default=False,
        description="Whether this service should create/update database tables on startup.",
    )
    jwt_secret: str = Field(default="super-secret", description="JWT signing secret")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    access_token_expire_minutes: int = Field(default=60, description="Token lifetime in minutes")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"], description="Allowed CORS origins")
    default_rate_limit: str = Field(default="30/minute", description="Global rate limiting rule")
    rate_limiting_enabled: bool = Field(default=True, description="Toggle to disable SlowAPI limits (useful in tests)")
    booking_write_rate_limit: str = Field(
        default="20/minute",
        description="Per-user limit on creating, updating and cancelling reservations",
    )
    room_cache_ttl: int = Field(default=60, description="TTL (s) for cached room listings")
    log_dir: str = Field(default="logs", description="Directory for the per-service audit logs")
    default_timezone: str = Field(
        default="America/Mexico_City",
        description="Timezone used when no system_timezone entry has been stored yet.",
    )
    week_start_day: int = Field(
        default=0,
        ge=0,
        le=6,
        description="Weekday (0=Monday .. 6=Sunday) on which the weekly quota window starts.",
    )

    users_service_port: int = 8001
    rooms_service_port: int = 8002
    reservations_service_port: int = 8003
    system_config_service_port: int = 8004


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of the Settings object."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the cached Settings instance (useful for tests)."""

    get_settings.cache_clear()
