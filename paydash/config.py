"""
Configuration management using pydantic-settings.
All settings loaded from environment variables (12-factor app).
"""

from datetime import datetime
from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    db_path: str = Field(default="./data/paydash.duckdb", description="DuckDB file path")
    db_memory_limit: str = Field(default="2GB", description="DuckDB memory limit")
    db_threads: int = Field(default=4, description="DuckDB thread count")
    query_timeout_seconds: float = Field(
        default=30.0, gt=0, description="Per-query timeout before the store is considered unavailable"
    )

    # API
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    api_workers: int = Field(default=4, description="Uvicorn workers")
    api_reload: bool = Field(default=True, description="Enable hot reload")
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="CORS allowed origins (comma-separated)",
    )

    # Logging
    log_level: str = Field(default="info", description="Log level")
    log_format: str = Field(default="json", description="Log format (json|console)")

    # Analytics defaults
    default_period_days: int = Field(
        default=30, ge=1, description="Default window length for overview and comparisons"
    )
    all_time_start: datetime = Field(
        default=datetime(2020, 1, 1), description="Lower bound used for 'all time' windows"
    )
    top_users_default_limit: int = Field(default=10, ge=1, le=100, description="Default top-N size")
    max_period_days: int = Field(
        default=3650, ge=1, description="Longest trailing range or comparison period in days"
    )

    # Notifications
    notifications_enabled: bool = Field(default=True, description="Run the periodic evaluator")
    notification_interval_seconds: int = Field(
        default=3600, ge=60, description="Threshold evaluation interval"
    )
    notification_cleanup_interval_seconds: int = Field(
        default=86400, ge=3600, description="Interval between read-notification cleanups"
    )
    notification_cooldown_hours: int = Field(
        default=6, ge=1, description="Duplicate suppression window per notification type"
    )
    notification_comparison_days: int = Field(
        default=1, ge=1, description="Length of the compared periods in days"
    )
    notification_max_returned: int = Field(default=50, ge=1, description="Max notifications listed")
    notification_retention_days: int = Field(
        default=30, ge=1, description="Read notifications older than this are deleted"
    )

    # Thresholds
    revenue_drop_warning_pct: float = Field(default=20.0, gt=0, description="GTV drop % for WARNING")
    revenue_drop_critical_pct: float = Field(default=40.0, gt=0, description="GTV drop % for CRITICAL")
    failed_spike_warning_pct: float = Field(
        default=30.0, gt=0, description="Failed-count increase % for WARNING"
    )
    failed_spike_critical_pct: float = Field(
        default=50.0, gt=0, description="Failed-count increase % for CRITICAL"
    )
    success_rate_warning: float = Field(
        default=80.0, ge=0, le=100, description="Success rate below this is a WARNING"
    )
    success_rate_critical: float = Field(
        default=70.0, ge=0, le=100, description="Success rate below this is CRITICAL"
    )
    pending_warning_count: int = Field(default=100, ge=1, description="Pending count for WARNING")
    pending_critical_count: int = Field(default=500, ge=1, description="Pending count for CRITICAL")
    high_volume_multiplier: float = Field(
        default=1.5, gt=1.0, description="Volume vs 30-day daily average that counts as a high day"
    )

    # Development
    dev_mode: bool = Field(default=True, description="Development mode")
    debug: bool = Field(default=False, description="Debug mode")
    testing: bool = Field(default=False, description="Testing mode")

    @field_validator("cors_origins")
    @classmethod
    def parse_cors_origins(cls, v: str) -> List[str]:
        """Parse comma-separated CORS origins."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to ensure singleton behavior.
    """
    return Settings()
