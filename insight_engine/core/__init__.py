"""
Core infrastructure package for the Insight Engine.

Provides:
- Configuration management via pydantic-settings
- Injectable key-value storage (in-memory, file-backed, or disabled)
- FastAPI dependency injection utilities

Usage Examples:
    from insight_engine.core import get_settings, get_store

    settings = get_settings()
    store = get_store()
"""

from insight_engine.core.config import Settings, get_settings
from insight_engine.core.storage import (
    FileStore,
    InMemoryStore,
    KeyValueStore,
    close_store,
    get_store,
    init_store,
    set_store,
)
from insight_engine.core.dependencies import (
    SettingsDep,
    StoreDep,
    get_settings_dependency,
    get_store_dependency,
)

__all__ = [
    # Configuration management (from config.py)
    'Settings',
    'get_settings',
    # Storage (from storage.py)
    'KeyValueStore',
    'InMemoryStore',
    'FileStore',
    'init_store',
    'get_store',
    'set_store',
    'close_store',
    # FastAPI dependency injection (from dependencies.py)
    'get_settings_dependency',
    'get_store_dependency',
    'SettingsDep',
    'StoreDep',
]
