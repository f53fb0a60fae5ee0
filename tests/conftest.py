import json
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import httpx
import pytest
from typer.testing import CliRunner

from shipscli.core.services.tracking_service import ShipmentTrackingService
from shipscli.infrastructure.api.shipsgo_client import ShipsGoApiClient
from shipscli.infrastructure.cache.caching_service import CachingServiceImpl
from shipscli.infrastructure.config.settings import clear_test_config
from shipscli.infrastructure.resilience.api_retry import ApiRetryService
from shipscli.infrastructure.resilience.rate_limit_store import JsonFileRateLimitStore
from shipscli.infrastructure.resilience.rate_limiter import RateLimitTracker

TEST_BASE_URL = "https://api.shipsgo.test/v2"
TEST_TODAY = date(2024, 3, 1)

ScriptedResponse = Union[Dict[str, Any], Callable[[httpx.Request], httpx.Response]]


class FakeShipsGo:
    """Scripted ShipsGo backend for httpx.MockTransport.

    Routes match on method, path (relative to /v2) and, optionally, a subset
    of query params. Each route replays its responses in order; the last one
    repeats.
    """

    def __init__(self):
        self.routes: List[Dict[str, Any]] = []
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, status: int = 200, json_body: Any = None,
            headers: Optional[Dict[str, str]] = None, params: Optional[Dict[str, str]] = None,
            responses: Optional[List[ScriptedResponse]] = None) -> None:
        scripted = responses or [{"status": status, "json": json_body, "headers": headers or {}}]
        self.routes.append({"method": method, "path": path, "params": params or {}, "responses": list(scripted)})

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.startswith("/v2"):
            path = path[len("/v2"):]
        for route in self.routes:
            if route["method"] != request.method or route["path"] != path:
                continue
            if any(request.url.params.get(k) != v for k, v in route["params"].items()):
                continue
            responses = route["responses"]
            scripted = responses.pop(0) if len(responses) > 1 else responses[0]
            if callable(scripted):
                return scripted(request)
            content = b"" if scripted.get("json") is None else json.dumps(scripted["json"]).encode()
            return httpx.Response(scripted.get("status", 200), content=content, headers=scripted.get("headers") or {})
        return httpx.Response(418, json={"message": f"No route for {request.method} {path}"})

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == "/v2" + path]


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Keeps tests independent of the developer's environment and config."""
    monkeypatch.setenv("SHIPSGO_API_KEY", "DUMMY_TEST_KEY_FOR_INIT")
    clear_test_config()
    yield
    clear_test_config()


@pytest.fixture
def backend():
    return FakeShipsGo()


@pytest.fixture
def rate_tracker(tmp_path: Path):
    return RateLimitTracker(store=JsonFileRateLimitStore(tmp_path / "ratelimit.json"))


@pytest.fixture
def sleep_mock(mocker):
    return mocker.AsyncMock()


@pytest.fixture
def retry_service(sleep_mock):
    return ApiRetryService(sleep=sleep_mock)


@pytest.fixture
def cache_service(tmp_path: Path):
    cache = CachingServiceImpl(l2_dir=tmp_path / "cache")
    yield cache
    cache.close()


@pytest.fixture
def api_client(backend: FakeShipsGo, rate_tracker: RateLimitTracker):
    return ShipsGoApiClient(
        api_key="test-token",
        base_url=TEST_BASE_URL,
        rate_tracker=rate_tracker,
        transport=httpx.MockTransport(backend.handler),
    )


@pytest.fixture
def tracking_service(api_client, cache_service, retry_service, rate_tracker):
    """ShipmentTrackingService wired to the scripted backend."""
    return ShipmentTrackingService(
        transport=api_client,
        cache_service=cache_service,
        api_retry_service=retry_service,
        rate_tracker=rate_tracker,
        today=lambda: TEST_TODAY,
    )
