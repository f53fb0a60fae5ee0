"""Service for executing API calls with automatic retries.

Implements exponential backoff with jitter for transient errors like
rate limits (429), timeouts or temporary server issues (5xx). Client
errors (other 4xx) and insufficient credits (402) fail immediately.
"""

import asyncio
import enum
import logging
import random
import time
from typing import Any, Awaitable, Callable, Coroutine, Optional

from shipscli.core.exceptions import (
    ApiConnectionError,
    ConflictResolutionError,
    FatalApiError,
    InsufficientCreditsError,
    RateLimitError,
    RequestTimeoutError,
)
from shipscli.domain.events.api_events import (
    ApiCallFailed,
    ApiCallInitiated,
    ApiCallSucceeded,
    DomainEvent,
    RetryScheduled,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_BACKOFF_S = 1.0
DEFAULT_BACKOFF_FACTOR = 2.0
DEFAULT_MAX_JITTER_S = 0.5

# Programming errors; retrying would only repeat them
NON_RETRYABLE_EXCEPTIONS = (ValueError, TypeError, ConflictResolutionError)


class RetryDecision(enum.Enum):
    """How the retry loop should treat a failure."""
    RETRYABLE = "retryable"
    FATAL = "fatal"
    RATE_LIMITED = "rate_limited"
    INSUFFICIENT_CREDITS = "insufficient_credits"


def classify_failure(error: BaseException) -> RetryDecision:
    """Maps an exception raised by an API call to a RetryDecision."""
    if isinstance(error, RateLimitError):
        return RetryDecision.RATE_LIMITED
    if isinstance(error, InsufficientCreditsError):
        return RetryDecision.INSUFFICIENT_CREDITS
    if isinstance(error, FatalApiError):
        if 400 <= error.status < 500 and error.status != 429:
            return RetryDecision.FATAL
        return RetryDecision.RETRYABLE
    if isinstance(error, (RequestTimeoutError, ApiConnectionError)):
        return RetryDecision.RETRYABLE
    if isinstance(error, NON_RETRYABLE_EXCEPTIONS):
        return RetryDecision.FATAL
    return RetryDecision.RETRYABLE


def dispatch_event(event: DomainEvent) -> None:
    logger.debug(f"EVENT: {event}")


class ApiRetryService:
    """Handles API call execution with classification and exponential backoff."""

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_backoff_s: float = DEFAULT_INITIAL_BACKOFF_S,
        backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
        max_jitter_s: float = DEFAULT_MAX_JITTER_S,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initializes the ApiRetryService.

        Args:
            max_retries: Retries after the first attempt (so max_retries + 1 calls).
            initial_backoff_s: Delay in seconds before the first retry.
            backoff_factor: Multiplier applied per attempt (2 for exponential).
            max_jitter_s: Upper bound of the random delay added to each backoff.
            sleep: Coroutine used to wait between attempts.
        """
        self.max_retries = max_retries
        self.initial_backoff_s = initial_backoff_s
        self.backoff_factor = backoff_factor
        self.max_jitter_s = max_jitter_s
        self._sleep = sleep

        logger.debug(
            f"ApiRetryService initialized: max_retries={max_retries}, "
            f"initial_backoff={initial_backoff_s}s, factor={backoff_factor}, jitter<={max_jitter_s}s"
        )

    def compute_delay(self, attempt: int, error: BaseException) -> float:
        """Backoff before retry number `attempt + 1`.

        A Retry-After hint on a RateLimitError replaces the computed value.
        """
        if isinstance(error, RateLimitError) and error.retry_after:
            return float(error.retry_after)
        backoff = self.initial_backoff_s * (self.backoff_factor ** attempt)
        return backoff + random.uniform(0, self.max_jitter_s)

    async def execute_with_retry(
        self,
        func: Callable[..., Coroutine[Any, Any, Any]],
        *args: Any,
        endpoint_name: Optional[str] = None,
        **kwargs: Any,
    ) -> Any:
        """Executes an async function, retrying transient failures.

        Args:
            func: The async function (API call) to execute.
            *args: Positional arguments for the function.
            endpoint_name: Name used in logs and events (defaults to func.__name__).
            **kwargs: Keyword arguments for the function.

        Returns:
            The result of the first successful call.

        Raises:
            The last error once retries are exhausted, or a fatal error
            (4xx other than 429, 402, programming errors) immediately.
        """
        effective_endpoint = endpoint_name or getattr(func, "__name__", "api_call")
        last_exception: Optional[BaseException] = None

        for attempt in range(self.max_retries + 1):
            try:
                dispatch_event(ApiCallInitiated(endpoint=effective_endpoint, attempt_number=attempt + 1))
                start_time = time.perf_counter()
                result = await func(*args, **kwargs)
                latency_ms = (time.perf_counter() - start_time) * 1000
                dispatch_event(ApiCallSucceeded(endpoint=effective_endpoint, latency_ms=latency_ms, attempt_number=attempt + 1))
                return result

            except Exception as e:
                last_exception = e
                decision = classify_failure(e)

                if decision in (RetryDecision.FATAL, RetryDecision.INSUFFICIENT_CREDITS):
                    logger.info(f"Non-retryable error calling {effective_endpoint} on attempt {attempt + 1}: {e}")
                    dispatch_event(ApiCallFailed(
                        endpoint=effective_endpoint, error_type=type(e).__name__,
                        error_message=str(e), status=getattr(e, "status", None),
                    ))
                    raise

                if attempt >= self.max_retries:
                    logger.error(f"Max retries ({self.max_retries}) reached for {effective_endpoint}. Last error: {e}")
                    break

                delay = self.compute_delay(attempt, e)
                logger.warning(
                    f"Retryable error calling {effective_endpoint} on attempt {attempt + 1}/{self.max_retries + 1}: "
                    f"{type(e).__name__}: {e}. Waiting {delay:.2f}s..."
                )
                dispatch_event(RetryScheduled(
                    endpoint=effective_endpoint, attempt_number=attempt + 1,
                    delay_seconds=delay, reason=decision.value,
                ))
                await self._sleep(delay)

        dispatch_event(ApiCallFailed(
            endpoint=effective_endpoint, error_type=type(last_exception).__name__,
            error_message=str(last_exception), status=getattr(last_exception, "status", None),
        ))
        raise last_exception
