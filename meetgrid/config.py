"""Centralized configuration management using Pydantic Settings.

This module provides typed configuration for all application settings,
loaded from environment variables with sensible defaults.

Usage:
    from meetgrid.config import get_settings
    settings = get_settings()
    poll_interval = settings.scheduling.poll_interval_sec
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _parse_bool(v):
    if isinstance(v, str):
        return v.lower() in ("1", "true", "yes")
    return bool(v)


class RedisSettings(BaseSettings):
    """Redis connection configuration."""

    model_config = SettingsConfigDict(env_prefix="REDIS_", extra="ignore")

    host: str = Field(default="redis", description="Redis host")
    port: int = Field(default=6379, description="Redis port")
    password: str = Field(default="", description="Redis password")
    max_connections: int = Field(default=200, description="Maximum pool connections")
    pool_timeout_sec: float = Field(default=5.0, description="Pool timeout in seconds")
    health_check_interval: int = Field(default=30, description="Health check interval in seconds")
    socket_timeout: float = Field(default=5.0, description="Socket timeout in seconds")
    socket_connect_timeout: float = Field(default=5.0, description="Socket connect timeout in seconds")


class PostgresSettings(BaseSettings):
    """PostgreSQL connection configuration."""

    model_config = SettingsConfigDict(
        env_prefix="POSTGRES_",
        extra="ignore",
        populate_by_name=True,
    )

    host: str = Field(default="postgres", description="PostgreSQL host")
    port: int = Field(default=5432, description="PostgreSQL port")
    user: str = Field(default="devuser", description="PostgreSQL user")
    password: str = Field(default="", description="PostgreSQL password")
    database: str = Field(
        default="devdb",
        validation_alias="POSTGRES_DB",
        description="Database name",
    )
    pool_min_size: int = Field(default=2, description="Minimum pool size")
    pool_max_size: int = Field(default=10, description="Maximum pool size")
    pool_timeout: int = Field(default=30, description="Timeout for acquiring connections")
    pool_max_lifetime: int = Field(
        default=1800, description="Maximum connection lifetime in seconds"
    )
    pool_max_idle: int = Field(
        default=300, description="Maximum idle time before closing connection"
    )

    def get_dsn(self) -> str:
        """Generate PostgreSQL DSN connection string."""
        return (
            f"host={self.host} port={self.port} user={self.user} "
            f"password={self.password} dbname={self.database} sslmode=disable"
        )


class CorsSettings(BaseSettings):
    """CORS configuration."""

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    origins_raw: str = Field(
        default="http://localhost:3000",
        validation_alias="CORS_ORIGINS",
    )
    origins_regex: str = Field(
        default="",
        validation_alias="CORS_ORIGINS_REGEX",
        description="Regex pattern for origins",
    )

    @property
    def origins(self) -> list[str]:
        """Parse comma-separated origins into list."""
        return [o.strip() for o in self.origins_raw.split(",") if o.strip()]

    @property
    def allow_credentials(self) -> bool:
        """Credentials not allowed with wildcard origins."""
        return self.origins != ["*"] and not self.origins_regex


class DebugSettings(BaseSettings):
    """Debug flags configuration."""

    model_config = SettingsConfigDict(extra="ignore")

    request: bool = Field(default=False, alias="request_debug")
    websocket: bool = Field(default=False, alias="ws_debug")

    @field_validator("*", mode="before")
    @classmethod
    def parse_bool(cls, v):
        return _parse_bool(v)


class FeatureSettings(BaseSettings):
    """Feature flags configuration.

    ``db`` selects the Postgres store; without it the in-memory demo store
    is used. ``realtime`` selects the Redis push feed over polling.
    """

    model_config = SettingsConfigDict(extra="ignore")

    db: bool = Field(default=False, alias="enable_db")
    realtime: bool = Field(default=True, alias="enable_realtime")

    @field_validator("*", mode="before")
    @classmethod
    def parse_bool(cls, v):
        return _parse_bool(v)


class SchedulingSettings(BaseSettings):
    """Scheduling behaviour configuration."""

    model_config = SettingsConfigDict(env_prefix="SCHEDULING_", extra="ignore")

    poll_interval_sec: float = Field(default=0.5, description="Polling feed interval")
    best_slot_limit: int = Field(default=10, description="Best slots returned by default")
    history_retention_days: int = Field(default=7, description="Days an event stays in history")
    history_max_items: int = Field(default=20, description="Events kept per client history")
    default_end_time: str = Field(default="18:00", description="End time for windows given without one")
    default_duration: int = Field(default=60, description="Meeting duration in minutes")


class CalendarSettings(BaseSettings):
    """Busy-time calendar sources configuration."""

    model_config = SettingsConfigDict(env_prefix="CALENDAR_", extra="ignore")

    ical_url: str = Field(default="", description="Public iCal feed URL")
    google_calendar_id: str = Field(default="primary", description="Google calendar to query")
    timezone: str = Field(default="Asia/Tokyo", description="Local zone for day boundaries")
    request_timeout_sec: float = Field(default=10.0, description="HTTP timeout for calendar sources")
    user_agent: str = Field(default="meetgrid/1.0")
    google_client_id: str = Field(default="", description="OAuth client id for the FreeBusy scope")
    google_client_secret: str = Field(default="", description="OAuth client secret")
    google_redirect_uri: str = Field(
        default="http://localhost:8000/sched/auth/google/callback",
        description="Callback registered with Google for the OAuth client",
    )
    app_base_url: str = Field(default="http://localhost:3000", description="Frontend the callback returns to")

    @property
    def google_oauth_configured(self) -> bool:
        return bool(self.google_client_id and self.google_client_secret)


class Settings:
    """Main application settings combining all configuration sections.

    This is not a BaseSettings subclass to avoid env var conflicts.
    Each subsetting is loaded independently with its own prefix.
    """

    def __init__(self) -> None:
        self.redis = RedisSettings()
        self.postgres = PostgresSettings()
        self.cors = CorsSettings()
        self.debug = DebugSettings()
        self.features = FeatureSettings()
        self.scheduling = SchedulingSettings()
        self.calendar = CalendarSettings()


@lru_cache
def get_settings() -> Settings:
    """Get cached Settings instance (singleton pattern)."""
    return Settings()


def clear_settings_cache() -> None:
    """Clear cached settings (useful for testing)."""
    get_settings.cache_clear()
