"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Allow extra env vars without failing
    )

    # App
    app_name: str = "StatusPulse"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"

    # API
    api_prefix: str = "/api/v1"

    # Database
    database_url: str = "sqlite+aiosqlite:///./statuspulse.db"
    database_pool_size: int = 5
    database_max_overflow: int = 10

    # External feeds
    status_api_base: str = "https://status.vrchat.com/api/v2"
    metrics_api_base: str = "https://d31qqo63tn8lj0.cloudfront.net"
    http_timeout_seconds: float = 10.0
    http_user_agent: str = "statuspulse/0.1"

    # Collector scheduling (seconds). Live values are kept in bot_config.
    collector_enabled: bool = True
    poll_interval_min_seconds: int = 60
    poll_interval_max_seconds: int = 3600
    poll_interval_default_seconds: int = 60

    # Incident resolution debounce: consecutive absent observations before resolving
    incident_resolve_after_missing: int = 1

    # User reports. Threshold/interval fall back to these when bot_config lacks them.
    default_report_threshold: int = 1
    default_report_interval_minutes: int = 60
    report_cooldown_minutes: int = 5
    report_details_max_length: int = 500
    report_categories: list[str] = ["login", "instance", "api", "auth", "download", "other"]
    alert_bucket_minutes: int = 15

    # Delivery. When unset, notifications are only logged.
    delivery_webhook_url: Optional[str] = None
    delivery_timeout_seconds: float = 10.0


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
