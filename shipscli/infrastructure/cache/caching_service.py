"""Concrete implementation of the namespaced TTL Caching Service.

Manages an L1 (in-memory) cache in front of an L2 (diskcache) store so
tracking data survives between CLI invocations. Every entry carries its own
TTL; the service also tracks hit/miss statistics and can be disabled.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import diskcache as dc

# Domain Layer Imports
from shipscli.domain.interfaces.cache import CacheLookup, CacheService, TtlSpec
from shipscli.domain.models.common import CacheKey

logger = logging.getLogger(__name__)

# Default Configuration Constants
DEFAULT_NAMESPACE = "shipsgo-container-tracker"
DEFAULT_L1_MAX_ITEMS = 256
DEFAULT_TTL_SECONDS = 60 * 60  # 1 hour
DEFAULT_L2_CACHE_DIR = Path.home() / ".shipscli" / "cache"


@dataclass
class CacheEntry:
    """Internal representation of a cache entry with expiry."""
    value: Any
    expiry_time: float  # Unix timestamp when the entry expires


class CachingServiceImpl(CacheService):
    """Two-level cache implementation (L1 Memory, L2 diskcache)."""

    def __init__(
        self,
        namespace: str = DEFAULT_NAMESPACE,
        l1_max_items: int = DEFAULT_L1_MAX_ITEMS,
        default_ttl: int = DEFAULT_TTL_SECONDS,
        l2_dir: Optional[Union[str, Path]] = DEFAULT_L2_CACHE_DIR,
    ):
        """Initializes the caching service.

        Args:
            namespace: Separates this application's entries from others.
            l1_max_items: Maximum number of in-memory entries.
            default_ttl: TTL in seconds when a call does not pass one.
            l2_dir: Base directory of the disk cache, or None for memory only.
        """
        self.namespace = namespace
        self.default_ttl = default_ttl
        self.l1_cache: Dict[CacheKey, CacheEntry] = {}
        self.l1_max_items = l1_max_items
        self.enabled = True
        self._stats = {"hits": 0, "misses": 0, "sets": 0, "invalidations": 0}

        self.disk_cache: Optional[dc.Cache] = None
        if l2_dir is not None:
            l2_path = Path(l2_dir) / namespace
            try:
                self.disk_cache = dc.Cache(str(l2_path), timeout=1)
                logger.debug(f"Initialized L2 disk cache at: {self.disk_cache.directory}")
            except Exception as e:
                logger.warning(f"Failed to initialize L2 disk cache at {l2_path}: {e}. Using memory only.")
                self.disk_cache = None

        logger.debug(f"CachingService initialized. namespace={namespace}, L1(max={l1_max_items}), L2={'on' if self.disk_cache is not None else 'off'}")

    def _prune_l1(self) -> None:
        """Removes expired items from L1 cache and evicts oldest if over limit."""
        now = time.time()
        expired_keys = [k for k, v in self.l1_cache.items() if now > v.expiry_time]
        for k in expired_keys:
            del self.l1_cache[k]

        # Insertion order approximates age
        while len(self.l1_cache) > self.l1_max_items:
            oldest_key = next(iter(self.l1_cache))
            del self.l1_cache[oldest_key]

    def _resolve_ttl(self, ttl: Optional[TtlSpec], value: Any) -> int:
        if ttl is None:
            return self.default_ttl
        if callable(ttl):
            return int(ttl(value))
        return int(ttl)

    # --- CacheService Interface Implementation ---

    async def get(self, key: CacheKey) -> CacheLookup:
        """Retrieves an item, checking L1 before L2."""
        if not self.enabled:
            self._stats["misses"] += 1
            return CacheLookup(hit=False)

        self._prune_l1()
        l1_entry = self.l1_cache.get(key)
        if l1_entry is not None:
            self._stats["hits"] += 1
            logger.debug(f"L1 cache hit for key: {key}")
            return CacheLookup(hit=True, value=l1_entry.value)

        if self.disk_cache is not None:
            try:
                value, expire_time = self.disk_cache.get(key, default=dc.ENOVAL, expire_time=True)
            except Exception as e:
                logger.warning(f"Failed to read L2 cache entry {key}: {e}")
                value, expire_time = dc.ENOVAL, None
            if value is not dc.ENOVAL:
                # Promote to L1 with the remaining lifetime
                expiry = expire_time if expire_time is not None else time.time() + self.default_ttl
                self.l1_cache[key] = CacheEntry(value=value, expiry_time=expiry)
                self._prune_l1()
                self._stats["hits"] += 1
                logger.debug(f"L2 cache hit for key: {key}")
                return CacheLookup(hit=True, value=value)

        self._stats["misses"] += 1
        logger.debug(f"Cache miss for key: {key}")
        return CacheLookup(hit=False)

    async def get_or_fetch(
        self,
        key: CacheKey,
        producer: Callable[[], Awaitable[Any]],
        ttl: Optional[TtlSpec] = None,
        bypass_cache: bool = False,
    ) -> Any:
        """Returns the cached value or produces and stores a fresh one."""
        if not bypass_cache:
            cached = await self.get(key)
            if cached.hit:
                return cached.value
        else:
            logger.debug(f"Bypassing cache for key: {key}")

        value = await producer()
        effective_ttl = self._resolve_ttl(ttl, value)
        if effective_ttl > 0:
            await self.set(key, value, ttl=effective_ttl)
        else:
            logger.debug(f"Not caching result for key: {key}")
        return value

    async def set(self, key: CacheKey, value: Any, ttl: Optional[int] = None) -> None:
        """Stores an item in both levels."""
        if not self.enabled:
            return

        effective_ttl = ttl if ttl is not None else self.default_ttl
        self.l1_cache[key] = CacheEntry(value=value, expiry_time=time.time() + effective_ttl)
        self._prune_l1()

        if self.disk_cache is not None:
            try:
                self.disk_cache.set(key, value, expire=effective_ttl)
            except Exception as e:
                logger.error(f"Failed to write L2 cache entry {key}: {e}")

        self._stats["sets"] += 1
        logger.debug(f"Stored cache entry: key={key}, ttl={effective_ttl}s")

    async def invalidate(self, key: CacheKey) -> bool:
        """Deletes an item from both levels."""
        removed = self.l1_cache.pop(key, None) is not None

        if self.disk_cache is not None:
            try:
                removed = self.disk_cache.delete(key) or removed
            except Exception as e:
                logger.warning(f"Failed to delete L2 cache entry {key}: {e}")

        if removed:
            self._stats["invalidations"] += 1
            logger.debug(f"Invalidated cache entry: key={key}")
        return removed

    async def clear(self) -> int:
        """Clears all items and returns how many distinct keys were removed."""
        keys = set(self.l1_cache)
        self.l1_cache.clear()

        if self.disk_cache is not None:
            try:
                keys.update(self.disk_cache.iterkeys())
                self.disk_cache.clear()
            except Exception as e:
                logger.error(f"Failed to clear L2 cache: {e}")

        logger.info(f"Cleared {len(keys)} cache entries from namespace '{self.namespace}'.")
        return len(keys)

    def stats(self) -> Dict[str, Any]:
        self._prune_l1()
        if self.disk_cache is not None:
            try:
                entries = len(self.disk_cache)
            except Exception as e:
                logger.warning(f"Failed to count L2 cache entries: {e}")
                entries = len(self.l1_cache)
        else:
            entries = len(self.l1_cache)

        lookups = self._stats["hits"] + self._stats["misses"]
        return {
            "namespace": self.namespace,
            "enabled": self.enabled,
            "entries": entries,
            **self._stats,
            "hit_rate": round(self._stats["hits"] / lookups, 3) if lookups else 0.0,
        }

    def disable(self) -> None:
        self.enabled = False
        logger.info("Cache disabled.")

    def enable(self) -> None:
        self.enabled = True
        logger.info("Cache enabled.")

    def close(self) -> None:
        """Closes the disk cache handle."""
        if self.disk_cache is not None:
            self.disk_cache.close()
