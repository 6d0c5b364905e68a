"""Configuration management for the Starepo AI gateway"""

from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_RETRYABLE_ERRORS = ["ECONNRESET", "ETIMEDOUT", "ENOTFOUND", "429", "503"]


class Settings(BaseSettings):
    """Gateway settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_prefix="STAREPO_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Starepo AI Gateway", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="console", description="Log format (json or console)")

    # Model discovery
    cache_file: Path = Field(
        default=Path.home() / ".starepo" / "ai-models-cache.json",
        description="Persisted model list cache",
    )
    model_cache_ttl: int = Field(default=3600, description="Default model list TTL (seconds)")
    health_check_timeout: float = Field(default=5.0, description="Health check timeout (seconds)")
    discovery_backoff_base: float = Field(default=1.0, description="Model list retry base delay (seconds)")
    discovery_backoff_max: float = Field(default=5.0, description="Model list retry delay cap (seconds)")
    discovery_max_attempts: int = Field(default=3, ge=1, description="Model list fetch attempts")

    # Retry middleware
    retry_max_retries: int = Field(default=3, description="Retries after the initial attempt")
    retry_base_delay: float = Field(default=1.0, description="Exponential backoff base (seconds)")
    retry_errors: List[str] = Field(
        default_factory=lambda: list(DEFAULT_RETRYABLE_ERRORS),
        description="Error codes or message fragments that are retried",
    )

    # Rate limit middleware
    rate_limit_max_requests: int = Field(default=60, description="Requests allowed per window")
    rate_limit_window_seconds: float = Field(default=60.0, description="Rate limit window (seconds)")

    # Connection pools
    pool_keepalive_expiry: float = Field(default=30.0, description="Idle keep-alive expiry (seconds)")
    pool_max_connections: int = Field(default=10, description="Max active connections per host")
    pool_max_keepalive_connections: int = Field(default=5, description="Max idle connections per host")
    pool_timeout: float = Field(default=60.0, description="Default client timeout (seconds)")

    # Accounts (developer CLI only)
    accounts_file: Optional[Path] = Field(default=None, description="JSON file with provider accounts")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
