"""Application settings loaded from environment variables via pydantic-settings."""

from enum import StrEnum
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class LogFormat(StrEnum):
    json = "json"
    console = "console"


class Settings(BaseSettings):
    """Central configuration; all values sourced from env vars or .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ── Crop catalog ────────────────────────────────────────────────────────
    catalog_path: str = "data/crops.csv"

    # ── HTTP ────────────────────────────────────────────────────────────────
    cors_allow_origins: list[str] = ["*"]

    # ── Realtime sensor feed ────────────────────────────────────────────────
    sensor_feed_url: str = ""
    sensor_feed_path: str = "sensors"
    sensor_feed_history: bool = True
    sensor_feed_auth: str = ""
    sensor_feed_timeout_seconds: float = 5.0
    sensor_stale_after_seconds: int = 30

    # ── Redis ───────────────────────────────────────────────────────────────
    redis_url: str = ""
    sensor_cache_ttl_seconds: int = 5

    # ── Observability ───────────────────────────────────────────────────────
    log_level: str = "info"
    log_format: LogFormat = LogFormat.json


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance (cached after first call)."""
    return Settings()
