"""
Rate Limiter

Fixed-window request counters per route class and identity, plus an
abuse-escalation tracker, stored in the shared store (Redis) with the
in-memory fallback store during outages.

Algorithm (per request):
1. Exempt paths (health/metrics) are never counted
2. A blocked identity is rejected without touching its counter
3. INCR the counter; the first increment of a window sets its expiry
4. count > max: reject and INCR the violation counter (own rolling window)
5. violations >= threshold: block the identity for a fixed duration

Rate limiting is protective, not safety-critical: any backend error lets the
request through and is logged.
"""

from dataclasses import dataclass
from typing import Any

from fastapi import Request
from slowapi.util import get_remote_address

from reflectai.core.config.constants import (
    HEADER_RATE_LIMIT,
    HEADER_RATE_REMAINING,
    HEADER_RATE_RESET,
    HEADER_USER_ID,
    RATE_LIMIT_EXEMPT_PATHS,
    REDIS_KEY_ABUSE,
    RouteClass,
    Stage,
)
from reflectai.core.exceptions import (
    CacheBackendError,
    IdentityBlockedError,
    RateLimiterBackendError,
    RateLimitExceededError,
)
from reflectai.core.logging.logger import get_logger
from reflectai.infrastructure.cache.kv_store import KeyValueStore

logger = get_logger(__name__)

IP_KEYED_ROUTES = frozenset({RouteClass.STANDARD, RouteClass.STRICT})


@dataclass(frozen=True)
class RateLimitRule:
    """Window length (seconds) and request ceiling for one route class."""

    window: int
    max_requests: int


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_after: int
    blocked: bool = False

    def headers(self) -> dict[str, str]:
        return {
            HEADER_RATE_LIMIT: str(self.limit),
            HEADER_RATE_REMAINING: str(self.remaining),
            HEADER_RATE_RESET: str(self.reset_after),
        }


def derive_identity(route_class: RouteClass, user_id: str | None, ip_address: str | None) -> str:
    """
    ``user:{id}`` when authenticated, else ``ip:{address}``.

    Standard and strict routes are always keyed by IP.
    """
    if user_id and route_class not in IP_KEYED_ROUTES:
        return f"user:{user_id}"
    return f"ip:{ip_address or 'unknown'}"


def get_request_identity(request: Request, route_class: RouteClass) -> str:
    """Identity for a FastAPI request (X-User-ID header, else client address)."""
    return derive_identity(route_class, request.headers.get(HEADER_USER_ID), get_remote_address(request))


class RateLimiter:
    """
    Distributed per-identity rate limiter.

    Usage:
        limiter = RateLimiter(store, rules={RouteClass.AI: RateLimitRule(3600, 50)})
        result = await limiter.check(RouteClass.AI, "user:42")
    """

    def __init__(
        self,
        store: KeyValueStore,
        rules: dict[RouteClass, RateLimitRule],
        abuse_threshold: int = 10,
        abuse_window: int = 86400,
        block_duration: int = 86400,
        exempt_paths: tuple[str, ...] = RATE_LIMIT_EXEMPT_PATHS,
        enabled: bool = True,
    ):
        self._store = store
        self.rules = dict(rules)
        self.abuse_threshold = abuse_threshold
        self.abuse_window = abuse_window
        self.block_duration = block_duration
        self.exempt_paths = exempt_paths
        self.enabled = enabled
        self._allowed = 0
        self._rejected = 0
        self._backend_errors = 0

    @classmethod
    def from_settings(cls, store: KeyValueStore, settings) -> "RateLimiter":
        rl = settings.rate_limit
        rules = {
            RouteClass.STANDARD: RateLimitRule(rl.RATE_LIMIT_STANDARD_WINDOW, rl.RATE_LIMIT_STANDARD_MAX),
            RouteClass.STRICT: RateLimitRule(rl.RATE_LIMIT_STRICT_WINDOW, rl.RATE_LIMIT_STRICT_MAX),
            RouteClass.USER: RateLimitRule(rl.RATE_LIMIT_USER_WINDOW, rl.RATE_LIMIT_USER_MAX),
            RouteClass.AI: RateLimitRule(rl.RATE_LIMIT_AI_WINDOW, rl.RATE_LIMIT_AI_MAX),
        }
        return cls(
            store,
            rules,
            abuse_threshold=rl.ABUSE_THRESHOLD,
            abuse_window=rl.ABUSE_WINDOW,
            block_duration=rl.ABUSE_BLOCK_DURATION,
            enabled=rl.RATE_LIMIT_ENABLED,
        )

    # -------------------------------------------------------------------------
    # Keys
    # -------------------------------------------------------------------------

    @staticmethod
    def _counter_key(route_class: RouteClass, identity: str) -> str:
        return f"{route_class.value}:{identity}"

    @staticmethod
    def _violation_key(identity: str) -> str:
        return f"{REDIS_KEY_ABUSE}:{identity}"

    @staticmethod
    def _blocked_key(identity: str) -> str:
        return f"{REDIS_KEY_ABUSE}:{identity}:blocked"

    def is_exempt(self, path: str) -> bool:
        return any(exempt in path for exempt in self.exempt_paths)

    # -------------------------------------------------------------------------
    # Counting
    # -------------------------------------------------------------------------

    async def hit(self, route_class: RouteClass, identity: str) -> RateLimitResult:
        """Count one request and report whether it is allowed."""
        rule = self.rules[route_class]
        if not self.enabled:
            return RateLimitResult(True, rule.max_requests, rule.max_requests, rule.window)

        try:
            return await self._hit(route_class, rule, identity)
        except (CacheBackendError, RateLimiterBackendError) as e:
            self._backend_errors += 1
            logger.warning(
                "Rate limiter backend error, allowing request",
                stage=Stage.RATE_LIMITING,
                route_class=route_class.value,
                identity=identity,
                error=str(e),
            )
            return RateLimitResult(True, rule.max_requests, rule.max_requests, rule.window)

    async def _hit(self, route_class: RouteClass, rule: RateLimitRule, identity: str) -> RateLimitResult:
        blocked_key = self._blocked_key(identity)
        if await self._store.get(blocked_key) is not None:
            self._rejected += 1
            block_ttl = await self._store.ttl(blocked_key)
            return RateLimitResult(
                False, rule.max_requests, 0, max(block_ttl, 0), blocked=True
            )

        key = self._counter_key(route_class, identity)
        count = await self._store.incr(key)
        if count == 1:
            await self._store.expire(key, rule.window)
            reset_after = rule.window
        else:
            reset_after = await self._store.ttl(key)
            if reset_after < 0:
                await self._store.expire(key, rule.window)
                reset_after = rule.window

        if count > rule.max_requests:
            self._rejected += 1
            blocked = await self._record_violation(identity)
            logger.warning(
                "Rate limit exceeded",
                stage=Stage.RATE_LIMITING,
                route_class=route_class.value,
                identity=identity,
                count=count,
                limit=rule.max_requests,
            )
            if blocked:
                reset_after = self.block_duration
            return RateLimitResult(False, rule.max_requests, 0, reset_after, blocked=blocked)

        self._allowed += 1
        return RateLimitResult(True, rule.max_requests, rule.max_requests - count, reset_after)

    async def _record_violation(self, identity: str) -> bool:
        """Count a violation; returns True when the identity just got blocked."""
        key = self._violation_key(identity)
        violations = await self._store.incr(key)
        if violations == 1:
            await self._store.expire(key, self.abuse_window)

        if violations < self.abuse_threshold:
            return False

        await self._store.set(self._blocked_key(identity), "1", ttl=self.block_duration)
        logger.warning(
            "Identity blocked for repeated rate limit violations",
            stage=Stage.RATE_LIMITING,
            identity=identity,
            violations=violations,
            block_duration=self.block_duration,
        )
        return True

    async def check(self, route_class: RouteClass, identity: str) -> RateLimitResult:
        """
        Like ``hit`` but raises when the request is rejected.

        Raises:
            IdentityBlockedError: Identity is currently blocked
            RateLimitExceededError: Window limit exceeded
        """
        result = await self.hit(route_class, identity)
        if result.allowed:
            return result

        details = {
            "route_class": route_class.value,
            "limit": result.limit,
            "remaining": result.remaining,
            "reset_after": result.reset_after,
        }
        if result.blocked:
            raise IdentityBlockedError(f"Identity {identity} is blocked", details=details)
        raise RateLimitExceededError(
            f"Rate limit exceeded for {route_class.value} routes", details=details
        )

    # -------------------------------------------------------------------------
    # Admin
    # -------------------------------------------------------------------------

    async def reset(self, identity: str) -> None:
        """Clear counters, violations and any block for one identity."""
        keys = [self._counter_key(route_class, identity) for route_class in self.rules]
        keys += [self._violation_key(identity), self._blocked_key(identity)]
        try:
            await self._store.delete(*keys)
        except CacheBackendError as e:
            logger.warning("Rate limit reset failed", stage=Stage.ADMIN, identity=identity, error=str(e))
            return
        logger.info("Rate limits reset", stage=Stage.ADMIN, identity=identity)

    async def clear(self) -> None:
        """Clear every counter, violation and block."""
        try:
            await self._store.flush_all()
        except CacheBackendError as e:
            logger.warning("Rate limit clear failed", stage=Stage.ADMIN, error=str(e))
            return
        logger.info("All rate limits cleared", stage=Stage.ADMIN)

    async def is_shared_available(self) -> bool:
        return await self._store.is_shared_available()

    def stats(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "allowed": self._allowed,
            "rejected": self._rejected,
            "backend_errors": self._backend_errors,
            "rules": {
                route_class.value: {"window": rule.window, "max": rule.max_requests}
                for route_class, rule in self.rules.items()
            },
            "store": self._store.stats(),
        }
