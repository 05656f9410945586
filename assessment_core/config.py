"""
Configuration settings for the assessment core.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="ASSESSMENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Configuration Store
    # ========================================
    config_store_url: str | None = Field(
        default=None,
        description="Base URL of the HTTP policy document store",
    )
    config_dir: Path | None = Field(
        default=None,
        description="Directory holding policy documents as <path>/<key>.json",
    )
    config_store_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for a single policy document fetch",
    )
    config_cache_ttl_seconds: float = Field(
        default=60.0,
        ge=0,
        description="How long a fetched policy document is served from cache",
    )

    # ========================================
    # Persistence
    # ========================================
    state_db_path: Path = Field(
        default=Path.home() / ".assessment" / "state.db",
        description="SQLite database for flashcards, learner profiles and violations",
    )

    # ========================================
    # Integrity Monitor
    # ========================================
    clock_skew_interval_seconds: float = Field(default=15.0, gt=0)
    clock_skew_threshold_ms: int = Field(
        default=120_000,
        description="Drift from expected wall-clock advance that counts as skew",
    )
    devtools_interval_seconds: float = Field(default=10.0, gt=0)
    devtools_size_threshold_px: int = Field(
        default=160,
        description="Outer-vs-inner window size delta that suggests open devtools",
    )

    # ========================================
    # Adaptive Selection
    # ========================================
    default_topic_mastery: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Mastery assumed for topics without a learner record",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Minimum level for the stderr log sink",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
