"""
FastAPI dependency injection module for the Insight Engine.

Provides reusable dependencies for configuration and key-value storage so
endpoint handlers never reach for module globals directly. In tests, override
them through `app.dependency_overrides`:

    app.dependency_overrides[get_store_dependency] = lambda: InMemoryStore()

Dependencies Provided:
- get_settings_dependency / SettingsDep: cached Settings singleton
- get_store_dependency / StoreDep: shared KeyValueStore (None when disabled)
"""

from typing import Annotated, Optional

from fastapi import Depends

from insight_engine.core.config import Settings, get_settings
from insight_engine.core.storage import KeyValueStore, get_store


def get_settings_dependency() -> Settings:
    """Return the Settings singleton instance."""
    return get_settings()


def get_store_dependency() -> Optional[KeyValueStore]:
    """
    Return the shared key-value store.

    Returns None when storage is disabled (STORAGE_BACKEND=none); services
    accept None and skip every storage operation in that case.
    """
    return get_store()


# Usage: async def endpoint(settings: SettingsDep)
SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]

# Usage: async def endpoint(store: StoreDep)
StoreDep = Annotated[Optional[KeyValueStore], Depends(get_store_dependency)]
