"""Exceptions raised by the ShipsGo client and tracking services."""

import json
from typing import Any, Optional


class ShipsGoError(Exception):
    """Base class for all errors surfaced by shipscli."""


class FatalApiError(ShipsGoError):
    """Non-2xx response that the caller must see (body included)."""

    def __init__(self, status: int, data: Any = None):
        self.status = status
        self.data = data
        try:
            body = json.dumps(data)
        except (TypeError, ValueError):
            body = str(data)
        super().__init__(f"API Error {status}: {body}")


class RateLimitError(ShipsGoError):
    """429 from the API. Retried with backoff before it reaches callers."""

    def __init__(self, retry_after: Optional[float] = None):
        self.retry_after = retry_after
        message = "Rate limited"
        if retry_after:
            message += f", retry after {retry_after:g}s"
        super().__init__(message)


class InsufficientCreditsError(ShipsGoError):
    """402 from the API. Never retried."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or "Insufficient credits")


class RequestTimeoutError(ShipsGoError, TimeoutError):
    """A request did not complete within the client timeout."""

    def __init__(self, elapsed_s: float):
        self.elapsed_s = elapsed_s
        super().__init__(f"ShipsGo API request timed out after {elapsed_s:.1f}s")


class ApiConnectionError(ShipsGoError):
    """The request never produced a response (DNS, refused, reset...)."""


class ConflictResolutionError(ShipsGoError):
    """Create returned 409 but the existing shipment could not be fetched."""
