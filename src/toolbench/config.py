"""Configuration and environment loading for Toolbench."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from TOOLBENCH_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TOOLBENCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Composition defaults
    parallel_timeout_ms: int = 30_000
    default_latency_estimate_ms: float = 100.0

    # Registry query defaults
    search_limit: int = 10
    recommend_limit: int = 5

    # Metrics retention
    hourly_retention_hours: int = 24
    daily_retention_days: int = 30
    metrics_aggregation_interval: float = 60.0  # Seconds between prune passes

    # Logging
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
