"""Defines common Value Objects used across different domain contexts.

These objects represent simple values like cache keys, shipment identifiers
and reference kinds, keeping naming consistent between layers.
"""

from enum import Enum
from typing import Any, NewType

# === Core Value Objects ===

ShipmentId = NewType("ShipmentId", str)        # ShipsGo shipment identifier
ReferenceNumber = NewType("ReferenceNumber", str) # BL, container or booking number

# === Caching Context ===
CacheKey = NewType("CacheKey", str)              # Unique key for a cache entry
CachePrefix = NewType("CachePrefix", str)      # Operation name used as key prefix (e.g., 'shipment:id')


class ReferenceKind(str, Enum):
    """The three independent identifiers a shipment can be tracked by."""
    BL = "bl"
    CONTAINER = "container"
    BOOKING = "booking"

    @property
    def query_param(self) -> str:
        """Name of the listing filter for this kind (e.g., 'bl_number')."""
        return f"{self.value}_number"

    @property
    def cache_prefix(self) -> CachePrefix:
        return CachePrefix(f"shipment:{self.value}")


def create_cache_key(prefix: str, **params: Any) -> CacheKey:
    """Builds a deterministic cache key from an operation name and parameters.

    Parameters are sorted by name and None values are skipped, so
    `create_cache_key("list", limit=None, status="PENDING")` and
    `create_cache_key("list", status="PENDING")` map to the same entry.
    """
    key_parts = [prefix]
    key_parts.extend(f"{k}={v}" for k, v in sorted(params.items()) if v is not None)
    return CacheKey("|".join(key_parts))
