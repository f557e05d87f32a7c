"""
Result cache for scrape outcomes.

Keyed by (content type, normalized URL), one TTL per content type.
Entries hold deep copies of the normalized records, so neither the
producer nor later readers can mutate what is cached. There is no
invalidation API: staleness is bounded by TTL expiry alone.

The cache is constructed once per process and injected into the
orchestrator; it is the only state shared between concurrent scrapes.
"""

import copy
import time
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Callable, Dict, List, Optional, Tuple

from catalogforge.core.config.scraping import CacheConfig
from catalogforge.core.logging import get_logger
from catalogforge.scraping.models import ContentType, ScrapedRecord
from catalogforge.scraping.urls import normalize_url

logger = get_logger(__name__)

CacheKey = Tuple[str, str]


def make_key(content_type: ContentType, url: str) -> CacheKey:
    """Content-addressed key: content type value plus normalized URL."""
    return ContentType.parse(content_type).value, normalize_url(url)


@dataclass
class CacheEntry:
    """A single cache entry with metadata."""

    key: CacheKey
    value: List[ScrapedRecord]
    created_at: float
    ttl_seconds: float
    hits: int = 0
    last_accessed: float = field(default=0.0)

    def is_expired(self, now: float) -> bool:
        """Check if entry has expired."""
        return (now - self.created_at) >= self.ttl_seconds

    def touch(self, now: float) -> None:
        """Update access time and hit count."""
        self.last_accessed = now
        self.hits += 1


class ResultCache:
    """
    TTL cache for normalized scrape results.

    Features:
    - Thread-safe get/put
    - Per-content-type TTL
    - LRU eviction when full
    - Cache statistics
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.config = config or CacheConfig()
        self._clock = clock or time.monotonic
        self._cache: Dict[CacheKey, CacheEntry] = {}
        self._lock = Lock()
        self._stats = {
            "hits": 0,
            "misses": 0,
            "evictions": 0,
            "expirations": 0,
        }

    def ttl_for(self, content_type: ContentType) -> float:
        """Configured TTL in seconds for a content type."""
        content_type = ContentType.parse(content_type)
        if content_type == ContentType.CATEGORIES:
            return self.config.categories_ttl_sec
        if content_type == ContentType.PRODUCTS:
            return self.config.products_ttl_sec
        return self.config.detail_ttl_sec

    def get(self, key: CacheKey) -> Optional[List[ScrapedRecord]]:
        """
        Get a copy of cached records.

        Args:
            key: Key from make_key()

        Returns:
            Cached records, or None on miss or expiry.
        """
        if not self.config.enabled:
            return None

        with self._lock:
            now = self._clock()
            entry = self._cache.get(key)

            if entry is None:
                self._stats["misses"] += 1
                return None

            if entry.is_expired(now):
                del self._cache[key]
                self._stats["misses"] += 1
                self._stats["expirations"] += 1
                return None

            entry.touch(now)
            self._stats["hits"] += 1
            return copy.deepcopy(entry.value)

    def put(
        self,
        key: CacheKey,
        value: List[ScrapedRecord],
        ttl: Optional[float] = None,
    ) -> None:
        """
        Cache records under key, replacing any existing entry.

        Args:
            key: Key from make_key()
            value: Normalized records to cache (copied)
            ttl: Seconds to keep the entry; defaults to the content type TTL
        """
        if not self.config.enabled or self.config.max_entries <= 0:
            return

        ttl_seconds = ttl if ttl is not None else self.ttl_for(key[0])
        stored = copy.deepcopy(value)

        with self._lock:
            now = self._clock()
            if key not in self._cache:
                while self._cache and len(self._cache) >= self.config.max_entries:
                    self._evict_lru()

            self._cache[key] = CacheEntry(
                key=key,
                value=stored,
                created_at=now,
                ttl_seconds=ttl_seconds,
                last_accessed=now,
            )

    def __contains__(self, key: CacheKey) -> bool:
        with self._lock:
            entry = self._cache.get(key)
            return entry is not None and not entry.is_expired(self._clock())

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def _evict_lru(self) -> None:
        """Evict least recently used entry."""
        if not self._cache:
            return

        lru_key = min(
            self._cache.keys(),
            key=lambda k: self._cache[k].last_accessed,
        )
        del self._cache[lru_key]
        self._stats["evictions"] += 1
        logger.debug("Evicted cache entry", content_type=lru_key[0], url=lru_key[1])

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            total = self._stats["hits"] + self._stats["misses"]
            hit_rate = self._stats["hits"] / total if total > 0 else 0.0

            return {
                "enabled": self.config.enabled,
                "entries": len(self._cache),
                "max_entries": self.config.max_entries,
                "hits": self._stats["hits"],
                "misses": self._stats["misses"],
                "evictions": self._stats["evictions"],
                "expirations": self._stats["expirations"],
                "hit_rate": f"{hit_rate:.2%}",
            }
