"""
Retry With Exponential Backoff

Generic ``with_retry(policy, fn)`` helper built on tenacity. It knows nothing
about providers or the network: it retries an async callable while the raised
error is classified retryable, sleeping ``initial_delay * backoff_factor**n``
(capped at ``max_delay``) between attempts.

The sleep function is injectable so backoff can be unit-tested without
waiting. Backoff sleeps are non-blocking and no lock is held while sleeping.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from reflectai.core.config.constants import Stage
from reflectai.core.exceptions import (
    CircuitOpenError,
    ProviderAPIError,
    ProviderAuthenticationError,
    RetryableProviderError,
    TokenLimitError,
)
from reflectai.core.logging.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

RETRYABLE_MESSAGES = (
    "rate limit",
    "timeout",
    "timed out",
    "server error",
    "overloaded",
    "try again",
    "too many requests",
    "connection reset",
)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry/backoff parameters.

    Attributes:
        max_retries: Total attempts (first call included)
        initial_delay: Delay before the second attempt (seconds)
        max_delay: Upper bound for any single delay (seconds)
        backoff_factor: Growth factor between consecutive delays
    """

    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 8.0
    backoff_factor: float = 2.0

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        retry = settings.retry
        return cls(
            max_retries=retry.RETRY_MAX_ATTEMPTS,
            initial_delay=retry.RETRY_INITIAL_DELAY,
            max_delay=retry.RETRY_MAX_DELAY,
            backoff_factor=retry.RETRY_BACKOFF_FACTOR,
        )

    def delay_for(self, retry_number: int) -> float:
        """Delay before retry ``retry_number`` (0-based)."""
        return min(self.initial_delay * self.backoff_factor ** retry_number, self.max_delay)


def is_retryable_error(error: BaseException) -> bool:
    """
    Classify an error as transient.

    Retryable: rate limit, timeout, 5xx, connection reset, or a message that
    says the service is overloaded / asks to try again. Authentication,
    token-limit, malformed-request and open-circuit errors never are.
    """
    if isinstance(
        error, (ProviderAuthenticationError, TokenLimitError, ProviderAPIError, CircuitOpenError)
    ):
        return False
    if isinstance(error, (RetryableProviderError, asyncio.TimeoutError, TimeoutError, ConnectionError)):
        return True

    status = getattr(error, "status_code", None)
    if status is None:
        status = getattr(error, "status", None)
    if isinstance(status, int) and (status == 429 or status >= 500):
        return True

    message = str(error).lower()
    return any(fragment in message for fragment in RETRYABLE_MESSAGES)


def _log_before_sleep(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Retrying after transient failure",
        stage=Stage.RETRY,
        attempt=retry_state.attempt_number,
        sleep_seconds=round(retry_state.next_action.sleep, 3) if retry_state.next_action else None,
        error_type=type(error).__name__ if error else None,
        error=str(error) if error else None,
    )


async def with_retry(
    policy: RetryPolicy,
    fn: Callable[[], Awaitable[T]],
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    retryable: Callable[[BaseException], bool] = is_retryable_error,
) -> T:
    """
    Call ``fn`` until it succeeds, a non-retryable error is raised, or
    ``policy.max_retries`` attempts have been made. The last error is re-raised.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max(1, policy.max_retries)),
        wait=wait_exponential(
            multiplier=policy.initial_delay,
            exp_base=policy.backoff_factor,
            min=0,
            max=policy.max_delay,
        ),
        retry=retry_if_exception(retryable),
        before_sleep=_log_before_sleep,
        sleep=sleep,
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            return await fn()
