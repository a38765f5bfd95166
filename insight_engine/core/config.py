"""
Settings and environment management module for the Insight Engine.

This module provides centralized configuration management using pydantic-settings,
which automatically loads settings from environment variables and .env files.

Key Features:
- Environment variable validation and type coercion
- Sensible defaults for development (in-memory storage, 24h cache TTL)
- Singleton pattern via @lru_cache for efficient access

Environment Variables:
- STORAGE_BACKEND: 'memory', 'file' or 'none' (default: memory)
- STORAGE_PATH: JSON file used by the 'file' backend
- METRIC_CACHE_TTL_MS: Lifetime of a cached metric result (default: 24h)
- METRIC_CACHE_PREFIX: Key prefix for cached metric results
- REBUILD_MIN_INTERVAL_MS: Cooldown between rebuild plans (default: 24h)
- MIN_RESPONSES_FOR_REBUILD: Minimum sample size for rebuild planning (default: 10)
- ACTIVITY_TIMEZONE: Time zone used to bucket raw response timestamps (default: UTC)
- LOG_LEVEL: Root log level (default: INFO)

Usage:
    from insight_engine.core.config import get_settings

    settings = get_settings()
    ttl = settings.metric_cache_ttl_ms
"""

from functools import lru_cache
from typing import List, Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


DAY_MS = 24 * 60 * 60 * 1000


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        storage_backend: Which key-value store backs the cache and plan persistence.
            'none' disables storage entirely; every storage operation becomes a no-op.
        storage_path: Location of the JSON document used by the file backend.
        metric_cache_ttl_ms: Time-to-live for cached metric engine results.
        metric_cache_prefix: Prefix prepended to every metric cache key.
        rebuild_min_interval_ms: Minimum time between two rebuild plans for a form.
        min_responses_for_rebuild: Responses required before planning is allowed.
        activity_timezone: IANA zone used to derive the hour of raw timestamps.
        cors_origins: Origins allowed to call the HTTP API.
        log_level: Root logging level.
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore',
        case_sensitive=False,
    )

    # =========================================================================
    # Storage
    # =========================================================================

    storage_backend: Literal['memory', 'file', 'none'] = 'memory'
    storage_path: str = '.insight_engine_store.json'

    # =========================================================================
    # Metric engine cache
    # =========================================================================

    metric_cache_ttl_ms: int = DAY_MS
    metric_cache_prefix: str = 'sfai:metric-engine:v1:'

    # =========================================================================
    # Auto-rebuild gating
    # =========================================================================

    # Cooldown between plans; a new plan is never proposed inside this window
    rebuild_min_interval_ms: int = DAY_MS

    # Below this many responses the insights are too noisy to act on
    min_responses_for_rebuild: int = 10

    # =========================================================================
    # Analyzer options
    # =========================================================================

    activity_timezone: str = 'UTC'

    # =========================================================================
    # HTTP surface and logging
    # =========================================================================

    cors_origins: List[str] = [
        'http://localhost:3000',
        'http://127.0.0.1:3000',
    ]
    log_level: str = 'INFO'


@lru_cache()
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Returns:
        Settings: The cached settings instance.

    Note:
        To refresh settings in tests, clear the cache:
        >>> get_settings.cache_clear()
    """
    return Settings()
