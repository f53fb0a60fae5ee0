import pytest

from shipscli.core.exceptions import (
    ApiConnectionError,
    ConflictResolutionError,
    FatalApiError,
    InsufficientCreditsError,
    RateLimitError,
    RequestTimeoutError,
)
from shipscli.infrastructure.resilience.api_retry import (
    ApiRetryService,
    RetryDecision,
    classify_failure,
)


@pytest.fixture
def retry_service(sleep_mock):
    return ApiRetryService(max_retries=3, initial_backoff_s=1.0, backoff_factor=2.0, max_jitter_s=0.5,
                           sleep=sleep_mock)


@pytest.mark.parametrize("error, expected", [
    (FatalApiError(400, {}), RetryDecision.FATAL),
    (FatalApiError(404, {}), RetryDecision.FATAL),
    (FatalApiError(422, {}), RetryDecision.FATAL),
    (FatalApiError(500, {}), RetryDecision.RETRYABLE),
    (FatalApiError(503, {}), RetryDecision.RETRYABLE),
    (RateLimitError(1.0), RetryDecision.RATE_LIMITED),
    (InsufficientCreditsError(), RetryDecision.INSUFFICIENT_CREDITS),
    (RequestTimeoutError(30.0), RetryDecision.RETRYABLE),
    (ApiConnectionError("reset"), RetryDecision.RETRYABLE),
    (ConflictResolutionError("gone"), RetryDecision.FATAL),
    (ValueError("bad"), RetryDecision.FATAL),
    (RuntimeError("unexpected"), RetryDecision.RETRYABLE),
])
def test_classify_failure(error, expected):
    assert classify_failure(error) == expected


@pytest.mark.asyncio
async def test_succeeds_after_transient_failures(retry_service, sleep_mock, mocker):
    operation = mocker.AsyncMock(side_effect=[FatalApiError(500), FatalApiError(500), "ok"])

    result = await retry_service.execute_with_retry(operation, endpoint_name="create_shipment")

    assert result == "ok"
    assert operation.await_count == 3
    assert sleep_mock.await_count == 2


@pytest.mark.asyncio
async def test_client_error_is_not_retried(retry_service, sleep_mock, mocker):
    operation = mocker.AsyncMock(side_effect=FatalApiError(404, {"message": "nope"}))

    with pytest.raises(FatalApiError):
        await retry_service.execute_with_retry(operation)

    assert operation.await_count == 1
    sleep_mock.assert_not_awaited()


@pytest.mark.asyncio
async def test_insufficient_credits_is_not_retried(retry_service, sleep_mock, mocker):
    operation = mocker.AsyncMock(side_effect=InsufficientCreditsError())

    with pytest.raises(InsufficientCreditsError):
        await retry_service.execute_with_retry(operation)

    assert operation.await_count == 1


@pytest.mark.asyncio
async def test_raises_last_error_after_exhaustion(retry_service, sleep_mock, mocker):
    operation = mocker.AsyncMock(side_effect=RequestTimeoutError(30.0))

    with pytest.raises(RequestTimeoutError, match="timed out after 30.0s"):
        await retry_service.execute_with_retry(operation)

    assert operation.await_count == 4
    assert sleep_mock.await_count == 3


@pytest.mark.asyncio
async def test_rate_limit_retry_after_overrides_backoff(retry_service, sleep_mock, mocker):
    operation = mocker.AsyncMock(side_effect=[RateLimitError(retry_after=7), "ok"])

    assert await retry_service.execute_with_retry(operation) == "ok"
    sleep_mock.assert_awaited_once_with(7.0)


@pytest.mark.asyncio
async def test_passes_arguments_through(retry_service, mocker):
    operation = mocker.AsyncMock(return_value="done")

    await retry_service.execute_with_retry(operation, "a", key="b")

    operation.assert_awaited_once_with("a", key="b")


@pytest.mark.parametrize("attempt, low, high", [(0, 1.0, 1.5), (1, 2.0, 2.5), (2, 4.0, 4.5)])
def test_compute_delay_is_exponential_with_jitter(retry_service, attempt, low, high):
    delay = retry_service.compute_delay(attempt, FatalApiError(500))
    assert low <= delay <= high


def test_compute_delay_without_jitter(mocker):
    service = ApiRetryService(initial_backoff_s=1.0, max_jitter_s=0.0, sleep=mocker.AsyncMock())
    assert service.compute_delay(3, ApiConnectionError("x")) == 8.0
