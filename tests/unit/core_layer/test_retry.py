"""
Unit Tests for Retry With Exponential Backoff

Sleep is replaced by a recorder, so the backoff schedule is asserted without
waiting.
"""

import asyncio

import pytest

from reflectai.core.exceptions import (
    CircuitOpenError,
    ProviderAPIError,
    ProviderAuthenticationError,
    ProviderConnectionError,
    ProviderRateLimitError,
    ProviderServerError,
    ProviderTimeoutError,
    TokenLimitError,
)
from reflectai.core.resilience.retry import RetryPolicy, is_retryable_error, with_retry


class FlakyCall:
    """Raises the queued errors in order, then returns ``result``."""

    def __init__(self, *errors, result="done"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


@pytest.mark.unit
class TestRetryPolicy:
    def test_defaults(self):
        policy = RetryPolicy()
        assert policy.max_retries == 3
        assert policy.initial_delay == 1.0
        assert policy.max_delay == 8.0
        assert policy.backoff_factor == 2.0

    def test_delay_schedule_is_capped(self):
        policy = RetryPolicy(max_retries=6, initial_delay=1.0, max_delay=8.0, backoff_factor=2.0)
        assert [policy.delay_for(n) for n in range(5)] == [1.0, 2.0, 4.0, 8.0, 8.0]

    def test_from_settings(self, test_settings):
        policy = RetryPolicy.from_settings(test_settings)
        assert policy.max_retries == test_settings.RETRY_MAX_ATTEMPTS
        assert policy.max_delay == test_settings.RETRY_MAX_DELAY


@pytest.mark.unit
class TestIsRetryableError:
    @pytest.mark.parametrize(
        "error",
        [
            ProviderTimeoutError("slow"),
            ProviderRateLimitError("429"),
            ProviderServerError("503"),
            ProviderConnectionError("reset"),
            asyncio.TimeoutError(),
            ConnectionResetError("reset by peer"),
            RuntimeError("The model is overloaded, please try again"),
        ],
    )
    def test_transient_errors(self, error):
        assert is_retryable_error(error) is True

    @pytest.mark.parametrize(
        "error",
        [
            ProviderAuthenticationError("bad key"),
            TokenLimitError("context length exceeded"),
            ProviderAPIError("malformed request"),
            CircuitOpenError("openai"),
            ValueError("bad input"),
        ],
    )
    def test_permanent_errors(self, error):
        assert is_retryable_error(error) is False

    def test_status_attribute(self):
        class HTTPishError(Exception):
            def __init__(self, status):
                super().__init__("http error")
                self.status = status

        assert is_retryable_error(HTTPishError(429)) is True
        assert is_retryable_error(HTTPishError(502)) is True
        assert is_retryable_error(HTTPishError(400)) is False


@pytest.mark.unit
class TestWithRetry:
    @pytest.mark.asyncio
    async def test_first_success_does_not_sleep(self, sleep_recorder):
        call = FlakyCall()
        assert await with_retry(RetryPolicy(), call, sleep=sleep_recorder) == "done"
        assert call.calls == 1
        assert sleep_recorder.delays == []

    @pytest.mark.asyncio
    async def test_retries_transient_errors_with_backoff(self, sleep_recorder):
        call = FlakyCall(ProviderServerError("503"), ProviderTimeoutError("slow"))
        result = await with_retry(RetryPolicy(max_retries=3), call, sleep=sleep_recorder)

        assert result == "done"
        assert call.calls == 3
        assert sleep_recorder.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_reraises_last_error_after_max_attempts(self, sleep_recorder):
        last = ProviderServerError("third")
        call = FlakyCall(ProviderServerError("first"), ProviderServerError("second"), last)

        with pytest.raises(ProviderServerError) as exc_info:
            await with_retry(RetryPolicy(max_retries=3), call, sleep=sleep_recorder)

        assert exc_info.value is last
        assert call.calls == 3
        assert len(sleep_recorder.delays) == 2

    @pytest.mark.asyncio
    async def test_non_retryable_error_fails_immediately(self, sleep_recorder):
        call = FlakyCall(ProviderAuthenticationError("bad key"))

        with pytest.raises(ProviderAuthenticationError):
            await with_retry(RetryPolicy(max_retries=5), call, sleep=sleep_recorder)

        assert call.calls == 1
        assert sleep_recorder.delays == []

    @pytest.mark.asyncio
    async def test_delays_respect_max_delay(self, sleep_recorder):
        call = FlakyCall(*[ProviderServerError("503") for _ in range(4)])
        policy = RetryPolicy(max_retries=5, initial_delay=2.0, max_delay=5.0, backoff_factor=3.0)

        await with_retry(policy, call, sleep=sleep_recorder)

        assert sleep_recorder.delays == [2.0, 5.0, 5.0, 5.0]

    @pytest.mark.asyncio
    async def test_custom_classifier(self, sleep_recorder):
        call = FlakyCall(ValueError("flaky"))
        result = await with_retry(
            RetryPolicy(max_retries=2), call, sleep=sleep_recorder, retryable=lambda e: True
        )
        assert result == "done"
        assert call.calls == 2
