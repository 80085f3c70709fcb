"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ first
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


DAY_SECONDS = 24 * 3600


def _build_upstream_settings() -> "UpstreamSettings":
    """Build upstream settings from environment.

    Static type checkers treat required fields as constructor arguments,
    which is not how BaseSettings is intended to be used.
    """

    return UpstreamSettings()  # type: ignore[call-arg]


class UpstreamSettings(BaseSettings):
    """Upstream mirror and outbound dispatch configuration."""

    base_url: str = Field(
        ...,
        description="Base URL of the upstream feed mirror (e.g., http://nitter:8080)",
    )
    concurrency: int = Field(
        1,
        description="Number of concurrent workers sending requests upstream",
        ge=1,
    )
    retry_after_ms: int | None = Field(
        None,
        description="Fixed delay before resending a request rejected with 429; retries disabled when unset or 0",
        ge=0,
    )
    max_retries: int | None = Field(
        None,
        description="Cap on consecutive 429 retries per request (unbounded when unset)",
        ge=1,
    )
    timeout_seconds: float = Field(
        30.0,
        description="Transport timeout for a single upstream request",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="UPSTREAM_",
        case_sensitive=False,
    )

    @property
    def retry_after_seconds(self) -> float | None:
        if self.retry_after_ms is None:
            return None
        return self.retry_after_ms / 1000


class QuotaSettings(BaseSettings):
    """Estimated per-account upstream request budget."""

    window_seconds: float = Field(
        15 * 60,
        description="Length of the quota window; the counter is reset when it elapses",
        gt=0,
    )
    requests_per_second_per_worker: float = Field(
        1.0,
        description="Average request rate budgeted for each concurrent worker",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="QUOTA_",
        case_sensitive=False,
    )


class CacheSettings(BaseSettings):
    """Response cache capacity and per-operation TTLs (seconds)."""

    max_entries: int = Field(
        100_000,
        description="Maximum number of cached responses before LRU eviction",
        ge=1,
    )
    user_positive_ttl: int = Field(30 * DAY_SECONDS, ge=0)
    user_negative_ttl: int = Field(3600, ge=0)
    timeline_positive_ttl: int = Field(60, ge=0)
    timeline_negative_ttl: int = Field(60, ge=0)
    post_positive_ttl: int = Field(60, ge=0)
    post_negative_ttl: int = Field(60, ge=0)

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log output: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(10 * 1024 * 1024, description="Rotate file after this many bytes (0 disables)")
    backup_count: int = Field(5, description="Number of rotated files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Server process configuration."""

    host: str = Field("0.0.0.0", description="Interface to bind")
    port: int = Field(8080, description="Port to bind", ge=1, le=65535)
    debug: bool = Field(False, description="Enable debug mode with verbose logging")

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if required settings are missing.
    """

    app_env: str = APP_ENV
    upstream: UpstreamSettings = Field(default_factory=_build_upstream_settings)
    quota: QuotaSettings = Field(default_factory=QuotaSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    log: LogSettings = Field(default_factory=LogSettings)
    app: AppSettings = Field(default_factory=AppSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
settings = Settings()
