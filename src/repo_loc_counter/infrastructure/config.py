"""Application configuration — loaded from environment variables."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration loaded from env vars (or ``.env`` file)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    github_token: SecretStr | None = None
    github_api_url: str = "https://api.github.com"
    http_timeout_seconds: float = 30.0

    cache_enabled: bool = True
    cache_path: Path | None = None
    cache_expiration_seconds: float = 3600.0
    cache_storage_limit_bytes: int = 5 * 1024 * 1024
    cache_sweep_interval_seconds: float = 15 * 60.0

    credential_lifetime_seconds: float = 3600.0
    credential_check_interval_seconds: float = 15 * 60.0

    batch_size: int = 4
    authenticated_delay_ms: int = 50
    unauthenticated_delay_ms: int = 100
    quota_refresh_every: int = 5
    max_file_size_bytes: int = 1_000_000
    excluded_extensions: list[str] = []

    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the singleton application settings (cached after first call)."""
    return Settings()
