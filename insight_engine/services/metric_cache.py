"""
Content-addressed, TTL-bound cache for metric engine results.

Entries are keyed by (form id, input signature) and carry an absolute
`expiresAt` (epoch ms). A read at or after `expiresAt` is a miss; the stale
entry is left in place and simply overwritten by the next write.

The cache is best-effort. Any store, JSON or validation failure is logged
and treated as a miss, and a failed write just means the next call
recomputes. Nothing here raises to the caller.
"""

import json
import logging
import time
from typing import Callable, Optional

from pydantic import ValidationError

from insight_engine.core.config import get_settings
from insight_engine.core.storage import KeyValueStore
from insight_engine.models import MetricEngineResult

logger = logging.getLogger(__name__)


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def build_cache_key(form_id: str, signature: str, prefix: Optional[str] = None) -> str:
    """Cache key format: '{prefix}{form_id}:{signature}'."""
    if prefix is None:
        prefix = get_settings().metric_cache_prefix
    return f"{prefix}{form_id}:{signature}"


class MetricCache:
    """
    Read-through cache of MetricEngineResult values over a KeyValueStore.

    Args:
        store: Backing store. None disables caching (every read misses,
            every write is dropped).
        ttl_ms: Entry lifetime; defaults to settings.metric_cache_ttl_ms.
        clock: Returns the current time in epoch ms. Injected by tests.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore],
        ttl_ms: Optional[int] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.ttl_ms = ttl_ms if ttl_ms is not None else get_settings().metric_cache_ttl_ms
        self.clock = clock

    def get(self, key: str) -> Optional[MetricEngineResult]:
        """Return the cached result for `key`, or None on miss/expiry/failure."""
        if self.store is None:
            return None

        try:
            raw = self.store.get(key)
        except Exception as e:
            logger.warning(f"Metric cache read failed for {key}: {e}")
            return None
        if not raw:
            return None

        try:
            parsed = json.loads(raw)
        except ValueError:
            logger.debug(f"Discarding unparseable cache entry {key}")
            return None
        if not isinstance(parsed, dict) or "expiresAt" not in parsed:
            logger.debug(f"Discarding malformed cache entry {key}")
            return None

        try:
            result = MetricEngineResult.model_validate(parsed)
        except ValidationError:
            logger.debug(f"Discarding cache entry {key} with unexpected shape")
            return None

        if result.expiresAt <= self.clock():
            logger.debug(f"Cache entry {key} expired")
            return None
        return result

    def set(self, key: str, value: MetricEngineResult) -> None:
        """Store `value` under `key`; failures are logged and ignored."""
        if self.store is None:
            return
        try:
            self.store.set(key, value.model_dump_json(exclude_none=True))
        except Exception as e:
            logger.warning(f"Metric cache write failed for {key}: {e}")
