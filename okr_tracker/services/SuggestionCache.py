"""In-memory cache for AI suggestions, one instance per process."""

import logging
import time
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

logger = logging.getLogger(__name__)


def build_cache_key(title: str, category: str, existing_krs: Optional[Iterable[str]] = None) -> str:
    """Normalize title, category and the set of existing key results into one key."""
    key = f"{title.lower().strip()}:{category}"
    existing = sorted(existing_krs or [])
    if existing:
        key += ":" + ",".join(existing)
    return key


class SuggestionCache:
    """
    Bounded TTL cache.

    Entries expire ttl_seconds after insertion; reads do not refresh them.
    When an insert pushes the size past max_entries, the single entry with
    the oldest insertion time is evicted (a linear scan, not LRU).
    """

    def __init__(
        self,
        max_entries: int = 200,
        ttl_seconds: float = 3600,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, float]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, stored_at = entry
        if self._clock() - stored_at > self.ttl_seconds:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = (value, self._clock())
        if len(self._entries) > self.max_entries:
            # min() keeps the first of equal timestamps, i.e. the earliest inserted
            oldest_key = min(self._entries, key=lambda k: self._entries[k][1])
            del self._entries[oldest_key]
            logger.debug("Evicted oldest suggestion cache entry")

    def clear(self) -> None:
        self._entries.clear()
