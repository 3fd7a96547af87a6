"""
Unit Tests for CircuitBreaker and BreakerRegistry

Tests the state machine (closed -> open -> half-open -> closed), failure
accounting, error categorization and the registry's admin operations. Time is
driven by a FakeClock so the lazy reset-timeout evaluation is deterministic.
"""

import asyncio

import pytest

from reflectai.core.config.constants import CircuitState, ErrorCategory
from reflectai.core.exceptions import (
    CircuitOpenError,
    ProviderAuthenticationError,
    ProviderRateLimitError,
    ProviderServerError,
    ProviderTimeoutError,
    TokenLimitError,
)
from reflectai.core.resilience.circuit_breaker import (
    BreakerRegistry,
    CircuitBreaker,
    categorize_error,
)


async def succeed():
    return "ok"


async def fail():
    raise ProviderServerError("upstream 503", details={"status_code": 503})


@pytest.fixture
def breaker(clock):
    return CircuitBreaker(
        "openai",
        failure_threshold=3,
        reset_timeout=30,
        half_open_success_threshold=2,
        error_threshold_percent=50,
        minimum_request_volume=10,
        clock=clock,
    )


async def trip_with_failures(breaker, count):
    for _ in range(count):
        with pytest.raises(ProviderServerError):
            await breaker.execute(fail)


@pytest.mark.unit
class TestCircuitBreakerStates:
    @pytest.mark.asyncio
    async def test_new_breaker_is_closed(self, breaker):
        assert breaker.get_state() == CircuitState.CLOSED
        assert breaker.is_open() is False

    @pytest.mark.asyncio
    async def test_success_returns_result(self, breaker):
        assert await breaker.execute(succeed) == "ok"
        assert breaker.get_status()["request_count"] == 1

    @pytest.mark.asyncio
    async def test_opens_after_failure_threshold(self, breaker):
        await trip_with_failures(breaker, 2)
        assert breaker.get_state() == CircuitState.CLOSED

        await trip_with_failures(breaker, 1)
        assert breaker.get_state() == CircuitState.OPEN
        assert breaker.is_open() is True

    @pytest.mark.asyncio
    async def test_functional_error_is_reraised_unchanged(self, breaker):
        original = ProviderServerError("boom")

        async def raise_original():
            raise original

        with pytest.raises(ProviderServerError) as exc_info:
            await breaker.execute(raise_original)
        assert exc_info.value is original

    @pytest.mark.asyncio
    async def test_open_circuit_fails_fast_without_calling(self, breaker):
        await trip_with_failures(breaker, 3)
        calls = []

        async def tracked():
            calls.append(1)
            return "ok"

        with pytest.raises(CircuitOpenError) as exc_info:
            await breaker.execute(tracked)

        assert calls == []
        assert exc_info.value.name == "openai"
        assert exc_info.value.last_error["category"] == ErrorCategory.SERVER_ERROR.value
        assert exc_info.value.error_counts[ErrorCategory.SERVER_ERROR.value] == 3

    @pytest.mark.asyncio
    async def test_success_in_closed_state_forgives_isolated_failures(self, breaker):
        await trip_with_failures(breaker, 2)
        await breaker.execute(succeed)
        await trip_with_failures(breaker, 2)

        assert breaker.get_state() == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_state_stays_open_until_called_after_timeout(self, breaker, clock):
        await trip_with_failures(breaker, 3)
        clock.advance(31)

        # Lazy evaluation: no call yet, so the stored state is still OPEN
        assert breaker.get_state() == CircuitState.OPEN
        assert breaker.is_open() is False

    @pytest.mark.asyncio
    async def test_call_before_timeout_is_rejected(self, breaker, clock):
        await trip_with_failures(breaker, 3)
        clock.advance(29.9)

        with pytest.raises(CircuitOpenError):
            await breaker.execute(succeed)

    @pytest.mark.asyncio
    async def test_half_open_closes_after_success_threshold(self, breaker, clock):
        await trip_with_failures(breaker, 3)
        clock.advance(30)

        await breaker.execute(succeed)
        assert breaker.get_state() == CircuitState.HALF_OPEN

        await breaker.execute(succeed)
        assert breaker.get_state() == CircuitState.CLOSED
        assert breaker.get_status()["failure_count"] == 0

    @pytest.mark.asyncio
    async def test_half_open_failure_reopens_and_restarts_timeout(self, breaker, clock):
        await trip_with_failures(breaker, 3)
        clock.advance(30)

        await trip_with_failures(breaker, 1)
        assert breaker.get_state() == CircuitState.OPEN

        clock.advance(29)
        with pytest.raises(CircuitOpenError):
            await breaker.execute(succeed)

    @pytest.mark.asyncio
    async def test_percentage_rule_needs_minimum_volume(self, clock):
        breaker = CircuitBreaker(
            "deepseek",
            failure_threshold=100,
            error_threshold_percent=50,
            minimum_request_volume=4,
            clock=clock,
        )
        await breaker.execute(succeed)
        await breaker.execute(succeed)
        await trip_with_failures(breaker, 1)
        assert breaker.get_state() == CircuitState.CLOSED

        await trip_with_failures(breaker, 1)
        # 2 consecutive failures out of 4 requests = 50%
        assert breaker.get_state() == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_concurrent_failures_are_all_counted(self, clock):
        breaker = CircuitBreaker("openai", failure_threshold=50, minimum_request_volume=100, clock=clock)

        async def slow_fail():
            await asyncio.sleep(0)
            raise ProviderServerError("503")

        results = await asyncio.gather(
            *(breaker.execute(slow_fail) for _ in range(20)), return_exceptions=True
        )

        assert all(isinstance(r, ProviderServerError) for r in results)
        status = breaker.get_status()
        assert status["failure_count"] == 20
        assert status["request_count"] == 20


@pytest.mark.unit
class TestCircuitBreakerManualOperations:
    @pytest.mark.asyncio
    async def test_trip_forces_open(self, breaker):
        breaker.trip()
        with pytest.raises(CircuitOpenError):
            await breaker.execute(succeed)

    @pytest.mark.asyncio
    async def test_reset_forces_closed_and_clears_counters(self, breaker):
        await trip_with_failures(breaker, 3)
        breaker.reset()

        status = breaker.get_status()
        assert status["state"] == CircuitState.CLOSED.value
        assert status["failure_count"] == 0
        assert status["request_count"] == 0
        assert status["last_error"] is None
        assert set(status["error_counts"].values()) == {0}
        assert await breaker.execute(succeed) == "ok"

    def test_get_status_reports_config(self, breaker):
        status = breaker.get_status()
        assert status["name"] == "openai"
        assert status["config"]["failure_threshold"] == 3
        assert status["config"]["reset_timeout"] == 30
        assert status["open_duration"] == 0

    @pytest.mark.asyncio
    async def test_open_duration_grows_while_open(self, breaker, clock):
        breaker.trip()
        clock.advance(12)
        assert breaker.get_status()["open_duration"] == 12


@pytest.mark.unit
class TestCategorizeError:
    @pytest.mark.parametrize(
        "error, expected",
        [
            (ProviderTimeoutError("slow"), ErrorCategory.TIMEOUT),
            (asyncio.TimeoutError(), ErrorCategory.TIMEOUT),
            (ProviderRateLimitError("429"), ErrorCategory.RATE_LIMIT),
            (TokenLimitError("too big"), ErrorCategory.TOKEN_LIMIT),
            (ProviderAuthenticationError("bad key"), ErrorCategory.AUTHENTICATION),
            (ProviderServerError("500"), ErrorCategory.SERVER_ERROR),
            (ConnectionResetError("reset"), ErrorCategory.NETWORK_ERROR),
            (RuntimeError("Request timed out"), ErrorCategory.TIMEOUT),
            (RuntimeError("Too Many Requests"), ErrorCategory.RATE_LIMIT),
            (RuntimeError("maximum token limit exceeded"), ErrorCategory.TOKEN_LIMIT),
            (RuntimeError("Invalid API key"), ErrorCategory.AUTHENTICATION),
            (RuntimeError("Authentication failed for project"), ErrorCategory.AUTHENTICATION),
            (RuntimeError("401 Unauthorized"), ErrorCategory.AUTHENTICATION),
            (RuntimeError("author field missing from payload"), ErrorCategory.UNKNOWN),
            (RuntimeError("Internal error on upstream"), ErrorCategory.SERVER_ERROR),
            (RuntimeError("ECONNREFUSED 10.0.0.1"), ErrorCategory.NETWORK_ERROR),
            (RuntimeError("something odd"), ErrorCategory.UNKNOWN),
            (None, ErrorCategory.UNKNOWN),
        ],
    )
    def test_categories(self, error, expected):
        assert categorize_error(error) == expected

    def test_status_code_attribute_is_used(self):
        class HTTPishError(Exception):
            status_code = 502

        assert categorize_error(HTTPishError("bad gateway")) == ErrorCategory.SERVER_ERROR


@pytest.mark.unit
class TestBreakerRegistry:
    def test_get_or_create_returns_same_instance(self, breakers):
        assert breakers.get_or_create("openai") is breakers.get_or_create("openai")

    def test_overrides_apply_on_creation(self, breakers):
        breaker = breakers.get_or_create("slow-service", reset_timeout=120)
        assert breaker.reset_timeout == 120
        assert breaker.failure_threshold == 3

    def test_unknown_names(self, breakers):
        assert breakers.get("missing") is None
        assert breakers.is_open("missing") is False
        assert breakers.reset_breaker("missing") is False

    def test_get_all_states(self, breakers):
        breakers.get_or_create("openai")
        breakers.get_or_create("deepseek").trip()

        states = breakers.get_all_states()
        assert set(states) == {"openai", "deepseek"}
        assert states["deepseek"]["state"] == CircuitState.OPEN.value

    def test_reset_breaker_and_reset_all(self, breakers):
        breakers.get_or_create("openai").trip()
        breakers.get_or_create("deepseek").trip()

        assert breakers.reset_breaker("openai") is True
        assert breakers.is_open("openai") is False
        assert breakers.is_open("deepseek") is True

        assert breakers.reset_all_breakers() == 2
        assert breakers.is_open("deepseek") is False

    def test_from_settings(self, test_settings, clock):
        registry = BreakerRegistry.from_settings(test_settings, clock=clock)
        breaker = registry.get_or_create("openai")

        assert breaker.failure_threshold == test_settings.CB_FAILURE_THRESHOLD
        assert breaker.reset_timeout == test_settings.CB_RESET_TIMEOUT
        assert breaker.minimum_request_volume == test_settings.CB_FAILURE_THRESHOLD
