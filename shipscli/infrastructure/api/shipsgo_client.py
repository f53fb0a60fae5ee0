"""Concrete implementation of the ApiTransport interface using httpx.

Sends a single request to the ShipsGo v2 API, feeds the response headers to
the rate limit tracker and translates 402/429, timeouts and network
failures into shipscli exceptions. Retries are handled by ApiRetryService.
"""

import logging
import time
from typing import Any, Dict, Optional

import httpx

from shipscli.core.exceptions import (
    ApiConnectionError,
    InsufficientCreditsError,
    RateLimitError,
    RequestTimeoutError,
)
from shipscli.domain.interfaces.api_transport import ApiResponse, ApiTransport
from shipscli.infrastructure.resilience.rate_limiter import RateLimitTracker

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.shipsgo.com/v2"
REQUEST_TIMEOUT_S = 30.0
API_KEY_HEADER = "X-Shipsgo-User-Token"


def _decode_json(response: httpx.Response) -> Any:
    """Response body as JSON, or {} for empty/non-JSON bodies."""
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError:
        logger.debug(f"Non-JSON response body (status {response.status_code}) ignored.")
        return {}


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        logger.debug(f"Ignoring non-numeric Retry-After header: {value!r}")
        return None


class ShipsGoApiClient(ApiTransport):
    """httpx-based transport for the ShipsGo API."""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = DEFAULT_BASE_URL,
        rate_tracker: Optional[RateLimitTracker] = None,
        timeout_s: float = REQUEST_TIMEOUT_S,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initializes the API client.

        Args:
            api_key: ShipsGo user token. Required.
            base_url: API root, e.g. 'https://api.shipsgo.com/v2'.
            rate_tracker: Receives the headers of every response.
            timeout_s: Upper bound for each request.
            transport: Optional httpx transport (used by tests).
        """
        if not api_key:
            raise ValueError("ShipsGo API key not provided. Set SHIPSGO_API_KEY or shipsgo.api_key in the config file.")

        self.base_url = base_url.rstrip("/")
        self.rate_tracker = rate_tracker
        self.timeout_s = timeout_s
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Content-Type": "application/json", API_KEY_HEADER: api_key},
            timeout=timeout_s,
            transport=transport,
        )
        logger.debug(f"ShipsGoApiClient initialized for {self.base_url}")

    async def request(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> ApiResponse:
        logger.debug(f"{method} {path} params={params}")
        start_time = time.perf_counter()
        try:
            response = await self.client.request(
                method,
                self.base_url + path,
                json=body,
                params={k: str(v) for k, v in params.items()} if params else None,
            )
        except httpx.TimeoutException as e:
            elapsed = time.perf_counter() - start_time
            logger.warning(f"{method} {path} timed out after {elapsed:.1f}s: {e}")
            raise RequestTimeoutError(elapsed) from e
        except httpx.TransportError as e:
            logger.warning(f"{method} {path} failed: {type(e).__name__}: {e}")
            raise ApiConnectionError(f"Could not reach ShipsGo API: {e}") from e

        latency_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(f"{method} {path} -> {response.status_code} in {latency_ms:.0f}ms")

        if self.rate_tracker is not None:
            self.rate_tracker.record_response(response.headers)

        if response.status_code == 429:
            raise RateLimitError(_parse_retry_after(response.headers.get("Retry-After")))

        data = _decode_json(response)
        if response.status_code == 402:
            message = data.get("message") if isinstance(data, dict) else None
            raise InsufficientCreditsError(message)

        return ApiResponse(status=response.status_code, headers=response.headers, data=data)

    async def aclose(self) -> None:
        await self.client.aclose()
