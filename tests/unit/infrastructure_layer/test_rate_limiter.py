"""
Unit Tests for RateLimiter

Fixed-window counting per route class and identity, abuse escalation to a
temporary block, identity derivation, and fail-open behavior when the
counter store breaks.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from starlette.requests import Request

from reflectai.core.config.constants import RouteClass
from reflectai.core.exceptions import CacheConnectionError, IdentityBlockedError, RateLimitExceededError
from reflectai.infrastructure.cache.fallback_store import FallbackStore
from reflectai.infrastructure.cache.kv_store import KeyValueStore
from reflectai.rate_limiting.rate_limiter import (
    RateLimiter,
    RateLimitRule,
    derive_identity,
    get_request_identity,
)


def make_request(headers=None, client=("10.0.0.7", 5000), path="/ai/respond"):
    scope = {
        "type": "http",
        "method": "POST",
        "path": path,
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
        "query_string": b"",
    }
    return Request(scope)


@pytest.mark.unit
class TestIdentity:
    def test_user_routes_prefer_user_id(self):
        assert derive_identity(RouteClass.AI, "42", "10.0.0.1") == "user:42"
        assert derive_identity(RouteClass.USER, "42", "10.0.0.1") == "user:42"

    def test_falls_back_to_ip(self):
        assert derive_identity(RouteClass.AI, None, "10.0.0.1") == "ip:10.0.0.1"
        assert derive_identity(RouteClass.AI, None, None) == "ip:unknown"

    def test_standard_and_strict_are_ip_keyed(self):
        assert derive_identity(RouteClass.STANDARD, "42", "10.0.0.1") == "ip:10.0.0.1"
        assert derive_identity(RouteClass.STRICT, "42", "10.0.0.1") == "ip:10.0.0.1"

    def test_request_identity(self):
        request = make_request(headers={"X-User-ID": "abc"})
        assert get_request_identity(request, RouteClass.AI) == "user:abc"
        assert get_request_identity(make_request(), RouteClass.AI) == "ip:10.0.0.7"


@pytest.mark.unit
class TestFixedWindow:
    @pytest.mark.asyncio
    async def test_allows_up_to_limit(self, rate_limiter):
        results = [await rate_limiter.hit(RouteClass.AI, "user:1") for _ in range(3)]

        assert all(r.allowed for r in results)
        assert [r.remaining for r in results] == [2, 1, 0]
        assert results[0].reset_after == 3600

    @pytest.mark.asyncio
    async def test_rejects_over_limit(self, rate_limiter):
        for _ in range(3):
            await rate_limiter.hit(RouteClass.AI, "user:1")

        result = await rate_limiter.hit(RouteClass.AI, "user:1")
        assert result.allowed is False
        assert result.remaining == 0

    @pytest.mark.asyncio
    async def test_window_expiry_resets_counter(self, rate_limiter, clock):
        for _ in range(4):
            await rate_limiter.hit(RouteClass.AI, "user:1")

        clock.advance(3600)
        assert (await rate_limiter.hit(RouteClass.AI, "user:1")).allowed is True

    @pytest.mark.asyncio
    async def test_reset_after_counts_down(self, rate_limiter, clock):
        await rate_limiter.hit(RouteClass.AI, "user:1")
        clock.advance(600)
        result = await rate_limiter.hit(RouteClass.AI, "user:1")
        assert result.reset_after == 3000

    @pytest.mark.asyncio
    async def test_identities_and_route_classes_are_independent(self, rate_limiter):
        for _ in range(3):
            await rate_limiter.hit(RouteClass.AI, "user:1")

        assert (await rate_limiter.hit(RouteClass.AI, "user:2")).allowed is True
        assert (await rate_limiter.hit(RouteClass.USER, "user:1")).allowed is True

    @pytest.mark.asyncio
    async def test_headers(self, rate_limiter):
        result = await rate_limiter.hit(RouteClass.AI, "user:1")
        assert result.headers() == {
            "X-RateLimit-Limit": "3",
            "X-RateLimit-Remaining": "2",
            "X-RateLimit-Reset": "3600",
        }

    def test_exempt_paths(self, rate_limiter):
        assert rate_limiter.is_exempt("/health") is True
        assert rate_limiter.is_exempt("/metrics") is True
        assert rate_limiter.is_exempt("/ai/respond") is False


@pytest.mark.unit
class TestCheck:
    @pytest.mark.asyncio
    async def test_check_raises_with_details(self, rate_limiter):
        for _ in range(3):
            await rate_limiter.check(RouteClass.AI, "user:1")

        with pytest.raises(RateLimitExceededError) as exc_info:
            await rate_limiter.check(RouteClass.AI, "user:1")

        assert exc_info.value.limit == 3
        assert exc_info.value.reset_after == 3600
        assert exc_info.value.details["route_class"] == RouteClass.AI.value


@pytest.mark.unit
class TestAbuseEscalation:
    @pytest.mark.asyncio
    async def test_repeated_violations_block_identity(self, rate_limiter):
        for _ in range(3):
            await rate_limiter.hit(RouteClass.AI, "user:1")

        first = await rate_limiter.hit(RouteClass.AI, "user:1")
        assert first.blocked is False

        second = await rate_limiter.hit(RouteClass.AI, "user:1")
        assert second.blocked is True
        assert second.reset_after == 600

    @pytest.mark.asyncio
    async def test_blocked_identity_rejected_on_every_route(self, rate_limiter):
        for _ in range(5):
            await rate_limiter.hit(RouteClass.AI, "user:1")

        with pytest.raises(IdentityBlockedError):
            await rate_limiter.check(RouteClass.USER, "user:1")

    @pytest.mark.asyncio
    async def test_block_lifts_after_duration(self, rate_limiter, clock):
        for _ in range(5):
            await rate_limiter.hit(RouteClass.AI, "user:1")

        clock.advance(601)
        result = await rate_limiter.hit(RouteClass.USER, "user:1")
        assert result.allowed is True

    @pytest.mark.asyncio
    async def test_reset_identity_unblocks(self, rate_limiter):
        for _ in range(5):
            await rate_limiter.hit(RouteClass.AI, "user:1")

        await rate_limiter.reset("user:1")

        result = await rate_limiter.hit(RouteClass.AI, "user:1")
        assert result.allowed is True
        assert result.remaining == 2

    @pytest.mark.asyncio
    async def test_clear_removes_everything(self, rate_limiter, rate_limit_store):
        for identity in ("user:1", "user:2"):
            for _ in range(5):
                await rate_limiter.hit(RouteClass.AI, identity)

        await rate_limiter.clear()

        assert await rate_limit_store.keys() == []


@pytest.mark.unit
class TestFailOpen:
    @pytest.mark.asyncio
    async def test_disabled_limiter_always_allows(self, rate_limit_store):
        limiter = RateLimiter(
            rate_limit_store, rules={RouteClass.AI: RateLimitRule(60, 1)}, enabled=False
        )
        for _ in range(5):
            assert (await limiter.hit(RouteClass.AI, "user:1")).allowed is True

    @pytest.mark.asyncio
    async def test_backend_error_allows_request(self):
        store = MagicMock(spec=KeyValueStore)
        store.get = AsyncMock(side_effect=CacheConnectionError("down"))
        limiter = RateLimiter(store, rules={RouteClass.AI: RateLimitRule(60, 1)})

        result = await limiter.check(RouteClass.AI, "user:1")

        assert result.allowed is True
        assert limiter.stats()["backend_errors"] == 1

    @pytest.mark.asyncio
    async def test_counts_continue_in_fallback_during_redis_outage(
        self, redis_client, in_memory_redis, clock
    ):
        store = KeyValueStore("ratelimit", redis_client, FallbackStore("ratelimit", clock=clock), clock=clock)
        limiter = RateLimiter(store, rules={RouteClass.AI: RateLimitRule(60, 2)})

        await limiter.hit(RouteClass.AI, "user:1")
        in_memory_redis.down = True

        assert (await limiter.hit(RouteClass.AI, "user:1")).allowed is True
        assert (await limiter.hit(RouteClass.AI, "user:1")).allowed is True
        assert (await limiter.hit(RouteClass.AI, "user:1")).allowed is False
