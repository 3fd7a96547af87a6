"""
Pytest Configuration and Shared Test Fixtures

This module provides pytest configuration and reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.

Every fixture builds fresh instances: there is no process-wide registry to
reset between tests.
"""

import os
import sys

import pytest

# Add project root to sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from reflectai.core.config.constants import RouteClass  # noqa: E402
from reflectai.core.config.settings import Settings  # noqa: E402
from reflectai.core.resilience.circuit_breaker import BreakerRegistry  # noqa: E402
from reflectai.core.resilience.retry import RetryPolicy  # noqa: E402
from reflectai.infrastructure.cache.cache_manager import ResponseCache  # noqa: E402
from reflectai.infrastructure.cache.fallback_store import FallbackStore  # noqa: E402
from reflectai.infrastructure.cache.kv_store import KeyValueStore  # noqa: E402
from reflectai.infrastructure.cache.redis_client import RedisClient  # noqa: E402
from reflectai.llm_providers.provider_service import ProviderService  # noqa: E402
from reflectai.rate_limiting.rate_limiter import RateLimiter, RateLimitRule  # noqa: E402
from tests.test_fixtures import FakeClock, InMemoryRedis, ProviderTestFactory  # noqa: E402


class SleepRecorder:
    """Async stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def test_settings():
    """Settings isolated from the environment and any local .env file."""
    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        REDIS_ENABLED=False,
        OPENAI_API_KEY=None,
        DEEPSEEK_API_KEY=None,
        DEEP_SEEK=None,
        FAKE_PROVIDER_ENABLED=True,
        LOG_LEVEL="WARNING",
    )


# ============================================================================
# Time Fixtures
# ============================================================================


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


# ============================================================================
# Store Fixtures
# ============================================================================


@pytest.fixture
def in_memory_redis(clock):
    return InMemoryRedis(clock=clock)


@pytest.fixture
async def redis_client(test_settings, in_memory_redis):
    """RedisClient connected to the in-memory stub."""
    client = RedisClient(test_settings, client=in_memory_redis)
    await client.connect()
    return client


@pytest.fixture
def cache_fallback(clock):
    return FallbackStore("cache", clock=clock)


@pytest.fixture
def shared_cache_store(redis_client, cache_fallback, clock):
    """Cache namespace served by the Redis stub, with fallback."""
    return KeyValueStore("cache", redis_client, cache_fallback, recheck_interval=30, clock=clock)


@pytest.fixture
def memory_cache_store(cache_fallback, clock):
    """Cache namespace with no Redis configured at all."""
    return KeyValueStore("cache", None, cache_fallback, clock=clock)


@pytest.fixture
def response_cache(memory_cache_store):
    return ResponseCache(memory_cache_store, default_ttl=3600, ai_response_ttl=86400)


@pytest.fixture
def rate_limit_store(clock):
    return KeyValueStore("ratelimit", None, FallbackStore("ratelimit", clock=clock), clock=clock)


@pytest.fixture
def rate_limiter(rate_limit_store):
    return RateLimiter(
        rate_limit_store,
        rules={
            RouteClass.STANDARD: RateLimitRule(window=3600, max_requests=5),
            RouteClass.STRICT: RateLimitRule(window=900, max_requests=2),
            RouteClass.USER: RateLimitRule(window=3600, max_requests=5),
            RouteClass.AI: RateLimitRule(window=3600, max_requests=3),
        },
        abuse_threshold=2,
        abuse_window=86400,
        block_duration=600,
    )


# ============================================================================
# Resilience and Provider Fixtures
# ============================================================================


@pytest.fixture
def breakers(clock):
    return BreakerRegistry(
        failure_threshold=3,
        reset_timeout=30,
        half_open_success_threshold=2,
        error_threshold_percent=50,
        clock=clock,
    )


@pytest.fixture
def provider_setup():
    """(catalog, factory, {name: FakeProvider}) with openai and deepseek available."""
    return ProviderTestFactory.build()


@pytest.fixture
def fake_providers(provider_setup):
    return provider_setup[2]


@pytest.fixture
def provider_service(provider_setup, breakers, sleep_recorder):
    catalog, factory, _ = provider_setup
    return ProviderService(
        catalog,
        factory,
        breakers,
        retry_policy=RetryPolicy(max_retries=3, initial_delay=1.0, max_delay=8.0, backoff_factor=2.0),
        request_timeout=5.0,
        sleep=sleep_recorder,
    )
