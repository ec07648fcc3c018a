"""
Metadata Cache
Time-bounded in-memory cache for small reference datasets read from the blob store.

Loader failures never propagate: the previous value is served if one exists
(even past its TTL), otherwise an empty collection. Empty fallbacks are not
cached, so the next call retries the loader.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from fanai.core.resilience import guarded

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


class MetadataCache:
    """Per-process cache keyed by logical dataset name."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._degraded: Set[str] = set()
        self._stats = {"hits": 0, "misses": 0, "loads": 0, "failures": 0}

    async def get_or_load(
        self,
        key: str,
        loader: Callable[[], Awaitable[Any]],
        ttl_seconds: float,
        empty: Optional[Callable[[], Any]] = list,
    ) -> Any:
        """
        Return the cached value for key, loading it if missing or expired.

        Args:
            key: Dataset name
            loader: Zero-argument coroutine factory producing the value
            ttl_seconds: Freshness window for a successful load
            empty: Factory for the value returned when the load fails and
                nothing was cached before

        Returns:
            Fresh, stale, or empty value
        """
        now = self._clock()
        entry = self._entries.get(key)
        if entry is not None and now < entry.expires_at:
            self._stats["hits"] += 1
            return entry.value

        self._stats["misses"] += 1
        failed = False

        def on_failure(error: Exception):
            nonlocal failed
            failed = True
            self._stats["failures"] += 1
            if entry is not None:
                logger.warning(f"[Cache] Serving stale '{key}' after load failure")
                return entry.value
            logger.warning(f"[Cache] No cached '{key}'; serving empty value")
            self._degraded.add(key)
            return empty() if empty else None

        self._stats["loads"] += 1
        value = await guarded("reference.load_dataset", loader, on_failure)
        if not failed:
            self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl_seconds)
            self._degraded.discard(key)
        return value

    def invalidate(self, key: str) -> bool:
        """Drop one key. Returns True if it was cached."""
        removed = self._entries.pop(key, None) is not None
        self._degraded.discard(key)
        if removed:
            logger.info(f"[Cache] Invalidated '{key}'")
        return removed

    def flush(self):
        """Drop every key."""
        self._entries.clear()
        self._degraded.clear()
        logger.info("[Cache] All caches cleared")

    def is_degraded(self, key: str) -> bool:
        """True while key is served as an empty fallback after a failed load."""
        return key in self._degraded

    def stats(self) -> dict:
        return {
            "keys": sorted(self._entries),
            "degraded": sorted(self._degraded),
            "stats": dict(self._stats),
        }
