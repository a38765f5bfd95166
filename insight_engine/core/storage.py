"""
Key-value storage layer for the Insight Engine.

The metric cache and the rebuild plan persistence both sit on a tiny
string-to-string store with `get`, `set` and `remove`. The store is injected
explicitly (parameter or FastAPI dependency) rather than reached through
ambient global state, so tests and non-browser deployments can swap in the
in-memory or file-backed implementation.

The store is treated as unreliable: callers wrap every operation and degrade
to a miss on failure. Implementations here may raise (for example on a full
disk); they do not try to hide errors themselves.

Lifecycle mirrors a connection pool:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_store()
        yield
        close_store()

`get_store()` lazily initializes the singleton from settings. With
STORAGE_BACKEND=none it returns None, which every consumer treats as
"storage unavailable" and silently skips.
"""

import json
import logging
import os
import tempfile
import threading
from typing import Dict, Optional, Protocol, runtime_checkable

from insight_engine.core.config import get_settings

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValueStore(Protocol):
    """Minimal string key-value store contract."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class InMemoryStore:
    """Process-local store backed by a dict."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self):
        with self._lock:
            return list(self._data.keys())


class FileStore:
    """
    Store persisted as a single JSON object on disk.

    Every write rewrites the whole document through a temporary file followed
    by os.replace, so a crash mid-write leaves the previous document intact.
    Suitable for a single process; there is no cross-process locking.

    Args:
        path: Location of the JSON document. Parent directories are created
            on first write.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self._lock = threading.Lock()

    def _read_all(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, 'r', encoding='utf-8') as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed store document at {self.path}")
            return {}
        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _write_all(self, data: Dict[str, str]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as fh:
                json.dump(data, fh, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read_all()
            data[key] = value
            self._write_all(data)

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._read_all()
            if key in data:
                del data[key]
                self._write_all(data)


# =============================================================================
# Store Singleton
# =============================================================================

_store: Optional[KeyValueStore] = None
_initialized = False


def init_store() -> Optional[KeyValueStore]:
    """
    Initialize the shared store from settings.

    Idempotent: returns the existing store when already initialized.

    Returns:
        The configured store, or None when STORAGE_BACKEND is 'none'.
    """
    global _store, _initialized

    if not _initialized:
        settings = get_settings()
        if settings.storage_backend == 'file':
            _store = FileStore(settings.storage_path)
        elif settings.storage_backend == 'memory':
            _store = InMemoryStore()
        else:
            _store = None
        _initialized = True
        logger.info(f"Key-value store initialized (backend={settings.storage_backend})")

    return _store


def get_store() -> Optional[KeyValueStore]:
    """Return the shared store, initializing it on first use."""
    if not _initialized:
        return init_store()
    return _store


def set_store(store: Optional[KeyValueStore]) -> None:
    """Replace the shared store (tests, embedding applications)."""
    global _store, _initialized
    _store = store
    _initialized = True


def close_store() -> None:
    """Drop the shared store; the next get_store() call re-initializes."""
    global _store, _initialized
    _store = None
    _initialized = False
