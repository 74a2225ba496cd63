"""Retry policy for calls to the AI provider.

Only rate-limit failures (HTTP 429 or an equivalent marker) are retried,
with exponential backoff: 5s, 10s, 20s by default. Any other error, or a
rate-limit error once the retries are used up, propagates to the caller.

The policy runs inside a single SerialExecutionQueue slot, so backoff
waits hold the lane rather than letting other tasks slip in between
attempts.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Coroutine, Optional

from openai import RateLimitError

from cryptoflow.domain.events.api_events import (
    ApiCallFailed, ApiCallSucceeded, RetryScheduled, dispatch_event
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_DELAY_SECONDS = 5.0
DEFAULT_BACKOFF_FACTOR = 2.0

RATE_LIMIT_STATUS = 429
RATE_LIMIT_MARKERS = ("429", "RESOURCE_EXHAUSTED", "rate_limit_exceeded")

SleepFunc = Callable[[float], Awaitable[Any]]


class MaxRetryError(Exception):
    """Exception raised when max retries are exceeded."""
    def __init__(self, original_exception: Exception, attempts: int):
        self.original_exception = original_exception
        self.attempts = attempts
        super().__init__(f"Max retries exceeded after {attempts} attempts. Last error: {original_exception}")


def is_rate_limit_error(error: BaseException) -> bool:
    """True if the error signals upstream throttling."""
    if isinstance(error, RateLimitError):
        return True
    for attr in ("status_code", "status"):
        if getattr(error, attr, None) in (RATE_LIMIT_STATUS, str(RATE_LIMIT_STATUS)):
            return True
    message = str(error)
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


class ApiRetryService:
    """Executes an async call, retrying rate-limit failures with exponential backoff."""

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_backoff_s: float = DEFAULT_INITIAL_DELAY_SECONDS,
        backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
        sleep: SleepFunc = asyncio.sleep,
    ):
        """Initializes the ApiRetryService.

        Args:
            max_retries: Retries allowed after the first attempt.
            initial_backoff_s: Delay in seconds before the first retry.
            backoff_factor: Multiplier applied to the delay after each retry.
            sleep: Awaitable sleep used for backoff (injectable for tests).
        """
        if max_retries < 0 or initial_backoff_s < 0:
            raise ValueError("max_retries and initial_backoff_s must not be negative.")
        self.max_retries = max_retries
        self.initial_backoff_s = initial_backoff_s
        self.backoff_factor = backoff_factor
        self._sleep = sleep
        logger.info(
            f"ApiRetryService initialized: max_retries={max_retries}, "
            f"initial_backoff={initial_backoff_s}s, factor={backoff_factor}"
        )

    async def execute_with_retry(
        self,
        func: Callable[..., Coroutine[Any, Any, Any]],
        *args: Any,
        endpoint_name: Optional[str] = None,
        **kwargs: Any
    ) -> Any:
        """Executes an async function, retrying it while it is rate limited.

        Args:
            func: The async function (API call) to execute.
            *args: Positional arguments for the function.
            endpoint_name: Label for logs and events (defaults to func's name).
            **kwargs: Keyword arguments for the function.

        Returns:
            The result of the first successful attempt.

        Raises:
            MaxRetryError: If the call is still rate limited after max_retries.
            Exception: Any non rate-limit error, immediately.
        """
        endpoint = endpoint_name or getattr(func, "__name__", "call")
        retries_left = self.max_retries
        delay = self.initial_backoff_s
        attempt = 0

        while True:
            attempt += 1
            start_time = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                if not is_rate_limit_error(e):
                    logger.error(f"Non-retryable error calling {endpoint} on attempt {attempt}: {type(e).__name__}: {e}")
                    dispatch_event(ApiCallFailed(endpoint=endpoint, error_type=type(e).__name__, error_message=str(e)))
                    raise
                if retries_left <= 0:
                    logger.error(f"Max retries ({self.max_retries}) reached for {endpoint}. Last error: {e}")
                    dispatch_event(ApiCallFailed(endpoint=endpoint, error_type=type(e).__name__, error_message=str(e)))
                    raise MaxRetryError(e, attempt) from e
                logger.warning(
                    f"Rate limited calling {endpoint} on attempt {attempt}/{self.max_retries + 1}. "
                    f"Waiting {delay:.2f}s..."
                )
                dispatch_event(RetryScheduled(endpoint=endpoint, attempt_number=attempt, delay_seconds=delay))
                await self._sleep(delay)
                retries_left -= 1
                delay *= self.backoff_factor
                continue

            latency_ms = (time.perf_counter() - start_time) * 1000
            dispatch_event(ApiCallSucceeded(
                endpoint=endpoint,
                attempts=attempt,
                latency_ms=latency_ms,
                response_summary=getattr(result, 'token_usage', None),
            ))
            return result


async def with_retry(
    attempt: Callable[[], Coroutine[Any, Any, Any]],
    max_retries: int = DEFAULT_MAX_RETRIES,
    initial_delay: float = DEFAULT_INITIAL_DELAY_SECONDS,
    sleep: SleepFunc = asyncio.sleep,
) -> Any:
    """Runs attempt() under a one-off ApiRetryService with the given limits."""
    service = ApiRetryService(max_retries=max_retries, initial_backoff_s=initial_delay, sleep=sleep)
    return await service.execute_with_retry(attempt)
