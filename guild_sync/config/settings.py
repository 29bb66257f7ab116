"""Configuration management using pydantic-settings.

Provides validated configuration with support for:
- JSON config file (config.json)
- GUILD_SYNC_* environment overrides (nested with "__")
- Type coercion and validation
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_REGIONS = ("eu", "us", "kr", "tw")


class RegionConfig(BaseModel):
    """OAuth and API endpoints for one Battle.net region."""

    auth_base_url: str
    api_base_url: str


def _default_regions() -> dict[str, RegionConfig]:
    return {
        region: RegionConfig(
            auth_base_url=f"https://{region}.battle.net/oauth",
            api_base_url=f"https://{region}.api.blizzard.com",
        )
        for region in DEFAULT_REGIONS
    }


class BattleNetConfig(BaseModel):
    """Credentials and endpoints for the Battle.net API."""

    client_id: str = ""
    client_secret: str = ""
    regions: dict[str, RegionConfig] = Field(default_factory=_default_regions)
    default_region: str = "eu"
    locale: str = "en_US"
    timeout: float = 15.0

    @field_validator("regions", mode="before")
    @classmethod
    def normalize_regions(cls, v: Any) -> Any:
        """Lower-case region keys and fill in the defaults when empty."""
        if not v:
            return _default_regions()
        if isinstance(v, dict):
            return {str(k).lower(): r for k, r in v.items()}
        return v

    @field_validator("default_region")
    @classmethod
    def lower_default_region(cls, v: str) -> str:
        return v.lower()


class LimiterConfig(BaseModel):
    """Rate limiter settings for upstream calls."""

    reservoir: int = 36000
    reservoir_refresh_interval: float = 3600.0
    max_concurrent: int = 20
    min_time_ms: int = 10
    retry_buffer_ms: int = 100

    @field_validator("reservoir", "max_concurrent", "reservoir_refresh_interval")
    @classmethod
    def ensure_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @field_validator("min_time_ms", "retry_buffer_ms")
    @classmethod
    def ensure_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must not be negative")
        return v


class SyncConfig(BaseModel):
    """Staleness and batching for sync passes."""

    stale_after_hours: int = 24
    batch_size: int = 50
    slow_checkout_seconds: float = 5.0
    token_refresh_margin_seconds: int = 60


class AppSettings(BaseSettings):
    """Application settings with validation.

    Settings are loaded from a JSON config file (config.json).
    """

    database_url: str = ""
    battlenet: BattleNetConfig = BattleNetConfig()
    limiter: LimiterConfig = LimiterConfig()
    sync: SyncConfig = SyncConfig()

    model_config = SettingsConfigDict(
        extra="ignore",
        env_prefix="GUILD_SYNC_",
        env_nested_delimiter="__",
    )

    @classmethod
    def from_json(cls, path: str | Path = "config.json") -> "AppSettings":
        """Load settings from a JSON config file.

        Args:
            path: Path to the JSON config file

        Returns:
            AppSettings instance with validated configuration
        """
        config_path = Path(path)
        if config_path.exists():
            with open(config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return cls(**data)
        return cls()


@lru_cache
def get_settings(config_path: str = "config.json") -> AppSettings:
    """Get cached application settings.

    Args:
        config_path: Path to JSON config file (default: config.json)

    Returns:
        Cached AppSettings instance
    """
    return AppSettings.from_json(config_path)


def load_config(path: str | Path = "config.json") -> AppSettings:
    """Load configuration from file, bypassing the settings cache."""
    get_settings.cache_clear()
    return AppSettings.from_json(path)
