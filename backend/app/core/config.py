"""Application configuration using pydantic-settings.

All environment variables should be accessed through the settings object
rather than using os.getenv() directly. This ensures:
1. Type validation at startup
2. Centralized configuration
3. Proper defaults for tablets that never received admin settings
"""

from functools import lru_cache
from typing import List, Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
    )

    # Database - defaults to relative path, override via env for deployments
    database_url: str = "sqlite:///./nectarv.db"

    # CORS - comma-separated origins or "*" for development only
    cors_origins: str = "http://localhost:3000,http://localhost:8000"

    # Restaurant local timezone (pre-order windows are wall-clock times)
    timezone: str = "Africa/Lagos"

    # Server
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # API
    api_v1_prefix: str = "/api/v1"

    # Rate limiting
    rate_limit_enabled: bool = True
    location_report_rate: str = "120/minute"

    # ==========================================================================
    # Geofencing
    # ==========================================================================
    geofence_default_radius_meters: float = 50.0
    geofence_recheck_interval_seconds: float = 30.0
    geolocation_timeout_seconds: float = 10.0
    geolocation_watch_max_age_seconds: float = 60.0

    # ==========================================================================
    # Order alerts
    # ==========================================================================
    order_poll_interval_seconds: float = 10.0
    order_signal_check_interval_seconds: float = 1.0
    notification_auto_dismiss_seconds: int = 5
    audio_settle_delay_ms: int = 50

    @field_validator(
        "geofence_recheck_interval_seconds",
        "geolocation_timeout_seconds",
        "order_poll_interval_seconds",
        "order_signal_check_interval_seconds",
    )
    @classmethod
    def validate_positive_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Intervals must be greater than zero")
        return v

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
