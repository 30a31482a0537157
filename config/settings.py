"""
Configuration settings for the Taskminder reminder engine.
All values can be overridden through environment variables or a .env file.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = "Taskminder"
    debug: bool = False
    environment: str = "production"
    log_level: str = "INFO"

    # Database (PostgreSQL)
    database_url: str = ""
    database_echo: bool = False
    db_pool_size: int = 10
    db_max_overflow: int = 20
    db_pool_timeout: int = 30
    db_pool_recycle: int = 3600

    # Scheduler host
    timezone: str = "UTC"

    # Due-check loop
    due_check_interval_minutes: int = Field(default=1, ge=1)
    due_check_batch_size: int = Field(default=100, ge=1)
    dispatch_worker_count: int = Field(default=10, ge=1)

    # One retry per entry, waiting the given number of seconds first
    dispatch_retry_delays_seconds: List[float] = Field(default_factory=lambda: [60.0, 300.0, 900.0])

    # Missed-reminder recovery
    recovery_interval_minutes: int = Field(default=60, ge=1)
    missed_grace_minutes: int = Field(default=5, ge=0)
    missed_upper_bound_minutes: int = Field(default=60, ge=1)

    # Retention of terminal reminders
    retention_days: int = Field(default=182, ge=1)
    retention_batch_size: int = Field(default=500, ge=1)
    retention_hour: int = Field(default=3, ge=0, le=23)

    # Business limits
    max_active_reminders: int = 5
    max_tags: int = 10

    # Notifications
    notification_webhook_url: Optional[str] = None
    notification_timeout_seconds: float = 30.0

    # Monitoring (0 disables the Prometheus endpoint)
    metrics_port: int = 9100

    # Seconds running dispatches get to stop on shutdown
    shutdown_timeout_seconds: float = 30.0


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the application settings."""
    return settings
