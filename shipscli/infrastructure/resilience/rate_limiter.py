"""Rate limit tracking for the ShipsGo API.

Reconciles the server's X-RateLimit-* headers with a local sliding window
of recent calls. Tracking is advisory: it reports the remaining budget but
never blocks a request.
"""

import time
import logging
from datetime import datetime, timezone
from typing import Callable, Mapping, Optional

from shipscli.domain.interfaces.rate_limit_store import RateLimitStore
from shipscli.domain.models.rate_limit import RateLimitRecord, RateLimitStatus

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100
DEFAULT_TIME_WINDOW_SECONDS = 60
WARNING_THRESHOLD = 20
# Reset values above this are absolute epoch timestamps (milliseconds,
# since epoch seconds stay below it until 2286); smaller values are a delay
EPOCH_THRESHOLD = 1e10


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    """Case-insensitive header lookup for plain dicts."""
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


def _parse_number(value: Optional[str], name: str) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.debug(f"Ignoring unparseable {name} header: {value!r}")
        return None


class RateLimitTracker:
    """Sliding window rate limit tracker backed by a RateLimitStore."""

    def __init__(
        self,
        store: RateLimitStore,
        time_window: int = DEFAULT_TIME_WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """Initializes the tracker.

        Args:
            store: Where the record is persisted between invocations.
            time_window: Length of the local sliding window in seconds.
            clock: Returns the current epoch time in seconds.
        """
        self.store = store
        self.time_window = time_window
        self._clock = clock

    def _prune_calls(self, record: RateLimitRecord, now: float) -> None:
        """Removes local call timestamps older than the time window."""
        record.local_calls = [t for t in record.local_calls if t > now - self.time_window]

    def record_response(self, headers: Mapping[str, str]) -> None:
        """Updates the record from a response's headers and logs the call locally."""
        try:
            record = self.store.load()
            now = self._clock()

            remaining = _parse_number(_header(headers, "X-RateLimit-Remaining"), "X-RateLimit-Remaining")
            limit = _parse_number(_header(headers, "X-RateLimit-Limit"), "X-RateLimit-Limit")
            reset_name = "X-RateLimit-Reset" if _header(headers, "X-RateLimit-Reset") else "Retry-After"
            reset = _parse_number(_header(headers, reset_name), reset_name)

            if remaining is not None:
                record.server_remaining = int(remaining)
            if limit is not None:
                record.server_limit = int(limit)
            if reset is not None:
                record.server_reset_at = reset / 1000 if reset > EPOCH_THRESHOLD else now + reset
            record.last_server_update = now

            record.local_calls.append(now)
            self._prune_calls(record, now)

            self.store.save(record)
        except Exception as e:
            # Rate tracking must never break an API call
            logger.debug(f"Failed to update rate limit record: {e}", exc_info=True)

    def status(self) -> RateLimitStatus:
        """Reports the remaining budget, preferring fresh server numbers."""
        record = self.store.load()
        now = self._clock()
        self._prune_calls(record, now)
        local_count = len(record.local_calls)

        has_recent_server_data = (
            record.last_server_update is not None
            and now - record.last_server_update < self.time_window
        )
        if has_recent_server_data and record.server_remaining is not None:
            reset_at = None
            if record.server_reset_at is not None:
                try:
                    reset_at = datetime.fromtimestamp(record.server_reset_at, tz=timezone.utc)
                except (OverflowError, OSError, ValueError):
                    logger.debug(f"Ignoring out-of-range reset time: {record.server_reset_at}")
            return RateLimitStatus(
                remaining=record.server_remaining,
                limit=record.server_limit if record.server_limit is not None else DEFAULT_LIMIT,
                local_call_count=local_count,
                source="server",
                reset_at=reset_at,
                warning="Approaching rate limit" if record.server_remaining < WARNING_THRESHOLD else None,
            )

        local_remaining = max(0, DEFAULT_LIMIT - local_count)
        return RateLimitStatus(
            remaining=local_remaining,
            limit=DEFAULT_LIMIT,
            local_call_count=local_count,
            source="estimated",
            warning="Approaching rate limit (estimated)" if local_remaining < WARNING_THRESHOLD else None,
        )
