import json
from datetime import datetime, timezone

import pytest

from shipscli.domain.models.rate_limit import RateLimitRecord
from shipscli.infrastructure.resilience.rate_limit_store import JsonFileRateLimitStore
from shipscli.infrastructure.resilience.rate_limiter import RateLimitTracker


class Clock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def store(tmp_path):
    return JsonFileRateLimitStore(tmp_path / "state" / "ratelimit.json")


@pytest.fixture
def tracker(store, clock):
    return RateLimitTracker(store=store, clock=clock)


def test_fresh_server_numbers_are_used(tracker, clock):
    tracker.record_response({"X-RateLimit-Remaining": "80", "X-RateLimit-Limit": "120", "X-RateLimit-Reset": "30"})

    status = tracker.status()

    assert status.source == "server"
    assert status.remaining == 80
    assert status.limit == 120
    assert status.warning is None
    assert status.reset_at == datetime.fromtimestamp(clock.now + 30, tz=timezone.utc)
    assert status.to_dict()["reset_at"].endswith("+00:00")


def test_headers_are_case_insensitive(tracker):
    tracker.record_response({"x-ratelimit-remaining": "10"})

    status = tracker.status()

    assert status.remaining == 10
    assert status.limit == 100
    assert status.warning == "Approaching rate limit"


def test_large_reset_is_absolute_epoch(tracker, store):
    tracker.record_response({"X-RateLimit-Remaining": "50", "X-RateLimit-Reset": "1700000500000"})

    assert store.load().server_reset_at == 1_700_000_500.0


def test_retry_after_used_when_reset_missing(tracker, store, clock):
    tracker.record_response({"Retry-After": "12"})
    assert store.load().server_reset_at == clock.now + 12


def test_stale_server_data_falls_back_to_estimate(tracker, clock):
    tracker.record_response({"X-RateLimit-Remaining": "3"})
    clock.now += 61

    status = tracker.status()

    assert status.source == "estimated"
    assert status.remaining == 100
    assert status.local_call_count == 0


def test_estimate_warns_when_local_calls_pile_up(tracker):
    for _ in range(85):
        tracker.record_response({})

    status = tracker.status()

    assert status.source == "estimated"
    assert status.remaining == 15
    assert status.warning == "Approaching rate limit (estimated)"


def test_local_calls_outside_window_are_pruned(tracker, clock):
    tracker.record_response({})
    clock.now += 30
    tracker.record_response({})
    clock.now += 45

    assert tracker.status().local_call_count == 1


def test_state_is_shared_through_the_file(store, clock):
    RateLimitTracker(store=store, clock=clock).record_response({"X-RateLimit-Remaining": "42"})

    other = RateLimitTracker(store=JsonFileRateLimitStore(store.path), clock=clock)

    assert other.status().remaining == 42


def test_corrupt_file_is_treated_as_empty(store):
    store.path.parent.mkdir(parents=True)
    store.path.write_text("{not json")

    assert store.load() == RateLimitRecord()


def test_wrongly_typed_file_falls_back_to_estimate(store, clock):
    store.path.parent.mkdir(parents=True)
    store.path.write_text(json.dumps({
        "server_remaining": "5",
        "server_limit": [100],
        "last_server_update": "yesterday",
        "local_calls": [clock.now - 1, "soon", None],
    }))
    tracker = RateLimitTracker(store=store, clock=clock)

    status = tracker.status()

    assert store.load().server_remaining == 5
    assert store.load().server_limit is None
    assert status.source == "estimated"
    assert status.local_call_count == 1
    assert status.remaining == 99


def test_unwritable_file_is_ignored(tmp_path, clock):
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory")
    tracker = RateLimitTracker(store=JsonFileRateLimitStore(blocker / "ratelimit.json"), clock=clock)

    tracker.record_response({"X-RateLimit-Remaining": "5"})

    assert tracker.status().source == "estimated"


def test_store_round_trips_record(store):
    record = RateLimitRecord(server_remaining=7, server_limit=100, last_server_update=1.0, local_calls=[1.0, 2.0])
    store.save(record)

    assert json.loads(store.path.read_text())["server_remaining"] == 7
    assert store.load() == record
