"""Interface for the remote tracking API transport.

The core only needs a way to turn (method, path, body, params) into
(status, headers, json). Everything else about HTTP stays in the
infrastructure adapter.
"""

import abc
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional


@dataclass
class ApiResponse:
    """Decoded API response. `data` is {} when the body is empty or not JSON."""
    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    data: Any = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class ApiTransport(abc.ABC):
    """Abstract Base Class for sending requests to the tracking API."""

    @abc.abstractmethod
    async def request(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> ApiResponse:
        """Performs a single request (no retries).

        Args:
            method: HTTP method.
            path: Path relative to the API base URL (e.g., '/ocean/shipments').
            body: Optional JSON body.
            params: Optional query parameters.

        Returns:
            The decoded response for any status except 402 and 429.

        Raises:
            InsufficientCreditsError: On 402.
            RateLimitError: On 429.
            RequestTimeoutError: If the request exceeds the timeout.
            ApiConnectionError: On network failures.
        """
        pass

    async def aclose(self) -> None:
        """Releases underlying connections."""
        return None
