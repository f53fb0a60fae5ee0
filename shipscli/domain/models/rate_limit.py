"""Domain models for API rate limit tracking."""

import math
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


@dataclass
class RateLimitRecord:
    """Persisted rate limit state.

    Server values come from the X-RateLimit-* headers of the latest
    response; `local_calls` holds epoch timestamps of recent calls and is
    used when the server numbers are stale or missing.
    """
    server_remaining: Optional[int] = None
    server_limit: Optional[int] = None
    server_reset_at: Optional[float] = None  # Epoch seconds
    last_server_update: Optional[float] = None  # Epoch seconds
    local_calls: List[float] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RateLimitRecord":
        """Builds a record from stored JSON. Fields of the wrong type are dropped."""
        remaining = _as_number(data.get("server_remaining"))
        limit = _as_number(data.get("server_limit"))
        calls = data.get("local_calls")
        return cls(
            server_remaining=int(remaining) if remaining is not None else None,
            server_limit=int(limit) if limit is not None else None,
            server_reset_at=_as_number(data.get("server_reset_at")),
            last_server_update=_as_number(data.get("last_server_update")),
            local_calls=[t for t in map(_as_number, calls if isinstance(calls, list) else []) if t is not None],
        )


@dataclass
class RateLimitStatus:
    remaining: int
    limit: int
    local_call_count: int
    source: str  # 'server' or 'estimated'
    reset_at: Optional[datetime] = None
    warning: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "remaining": self.remaining,
            "limit": self.limit,
            "local_call_count": self.local_call_count,
            "source": self.source,
        }
        if self.reset_at is not None:
            result["reset_at"] = self.reset_at.isoformat()
        if self.warning:
            result["warning"] = self.warning
        return result
