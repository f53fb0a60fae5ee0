"""Interface for caching mechanisms.

Defines the contract for storing, retrieving, and managing cached data
with per-entry TTLs, cache bypass and a global enable/disable switch.
"""

import abc
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Union

# Import relevant domain models
from ..models.common import CacheKey

# TTL in seconds, or a function computing it from the value being stored
TtlSpec = Union[int, Callable[[Any], int]]


@dataclass(frozen=True)
class CacheLookup:
    """Result of a cache read. `hit` distinguishes a cached None from a miss."""
    hit: bool
    value: Any = None


class CacheService(abc.ABC):
    """Abstract Base Class for caching operations."""

    @abc.abstractmethod
    async def get(self, key: CacheKey) -> CacheLookup:
        """Retrieves an item from the cache asynchronously.

        Args:
            key: The cache key to retrieve.

        Returns:
            A CacheLookup; `hit` is False if the key is absent, expired,
            or the cache is disabled.
        """
        pass

    @abc.abstractmethod
    async def get_or_fetch(
        self,
        key: CacheKey,
        producer: Callable[[], Awaitable[Any]],
        ttl: Optional[TtlSpec] = None,
        bypass_cache: bool = False,
    ) -> Any:
        """Returns the cached value, or produces, stores and returns a fresh one.

        Args:
            key: The cache key.
            producer: Coroutine function called on a miss or when bypassing.
            ttl: Seconds, or a callable mapping the produced value to seconds.
                A TTL <= 0 means the produced value is not stored.
            bypass_cache: Skip the lookup and always call the producer.
        """
        pass

    @abc.abstractmethod
    async def set(self, key: CacheKey, value: Any, ttl: Optional[int] = None) -> None:
        """Stores an item asynchronously.

        Args:
            key: The cache key to store the item under.
            value: The item to store.
            ttl: Time-to-live in seconds (uses the default if None).
        """
        pass

    @abc.abstractmethod
    async def invalidate(self, key: CacheKey) -> bool:
        """Removes an item. Returns True if something was removed."""
        pass

    @abc.abstractmethod
    async def clear(self) -> int:
        """Removes all items. Returns the number of entries cleared."""
        pass

    @abc.abstractmethod
    def stats(self) -> Dict[str, Any]:
        """Returns hit/miss counters and entry counts."""
        pass

    @abc.abstractmethod
    def disable(self) -> None:
        """Makes every subsequent lookup a miss and skips writes."""
        pass

    @abc.abstractmethod
    def enable(self) -> None:
        """Reverts disable()."""
        pass
