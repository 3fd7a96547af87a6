"""
Shared Store With In-Memory Fallback

``KeyValueStore`` gives the response cache and the rate limiter one key/value
contract that is served by Redis while it is reachable and by a per-process
``FallbackStore`` otherwise.

Behavior:
- Keys are namespaced (``cache:...``, ``ratelimit:...``) so ``flush_all`` only
  touches the owning component's keys in Redis.
- Any Redis error marks the shared store down, logs a warning and serves the
  same call from the fallback store. Callers never see the backend error.
- While down, availability is re-probed with PING at most once every
  ``recheck_interval`` seconds; the first successful probe switches back.

Availability over consistency: during an outage every process counts and
caches independently. Entries written to the fallback store are not migrated
when Redis recovers; they simply expire.
"""

import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from reflectai.core.config.constants import Stage
from reflectai.core.exceptions import CacheBackendError
from reflectai.core.logging.logger import get_logger
from reflectai.infrastructure.cache.fallback_store import FallbackStore
from reflectai.infrastructure.cache.redis_client import RedisClient

logger = get_logger(__name__)

T = TypeVar("T")

BACKEND_REDIS = "redis"
BACKEND_MEMORY = "memory"


class KeyValueStore:
    """
    Namespaced key/value store over Redis with a fallback store.

    Usage:
        store = KeyValueStore("cache", redis_client, FallbackStore("cache"))
        await store.set("ai:3f2a...", payload, ttl=86400)
        payload = await store.get("ai:3f2a...")
    """

    def __init__(
        self,
        namespace: str,
        redis_client: RedisClient | None,
        fallback: FallbackStore,
        recheck_interval: float = 30.0,
        clock: Callable[[], float] | None = None,
    ):
        self.namespace = namespace
        self._redis = redis_client
        self._fallback = fallback
        self._recheck_interval = recheck_interval
        self._clock = clock or time.monotonic
        self._redis_up = redis_client is not None and redis_client.is_connected()
        self._last_probe = self._clock()
        self._failovers = 0

    @property
    def fallback(self) -> FallbackStore:
        return self._fallback

    @property
    def backend(self) -> str:
        return BACKEND_REDIS if self._redis_up else BACKEND_MEMORY

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    # -------------------------------------------------------------------------
    # Availability tracking
    # -------------------------------------------------------------------------

    async def is_shared_available(self) -> bool:
        """True when calls are currently served by Redis (probing if due)."""
        if self._redis is None:
            return False
        if self._redis_up:
            return True

        now = self._clock()
        if now - self._last_probe < self._recheck_interval:
            return False
        self._last_probe = now

        if self._redis.is_connected():
            if not await self._redis.ping():
                return False
        else:
            try:
                await self._redis.connect()
            except CacheBackendError:
                return False

        self._redis_up = True
        logger.info("Shared store recovered", stage=Stage.SHARED_STORE, namespace=self.namespace)
        return True

    def _mark_down(self, op: str, error: Exception) -> None:
        if self._redis_up:
            self._failovers += 1
            logger.warning(
                "Shared store unavailable, using in-memory fallback",
                stage=Stage.SHARED_STORE,
                namespace=self.namespace,
                operation=op,
                error=str(error),
            )
        self._redis_up = False
        self._last_probe = self._clock()

    async def _call(
        self,
        op: str,
        shared: Callable[[], Awaitable[T]],
        local: Callable[[], Awaitable[T]],
    ) -> T:
        if await self.is_shared_available():
            try:
                return await shared()
            except CacheBackendError as e:
                self._mark_down(op, e)
        return await local()

    # -------------------------------------------------------------------------
    # Key/value contract
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        k = self._key(key)
        return await self._call("get", lambda: self._redis.get(k), lambda: self._fallback.get(k))

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        k = self._key(key)
        return await self._call(
            "set",
            lambda: self._redis.set(k, value, ttl=ttl),
            lambda: self._fallback.set(k, value, ttl=ttl),
        )

    async def delete(self, *keys: str) -> int:
        ks = [self._key(key) for key in keys]
        return await self._call(
            "delete", lambda: self._redis.delete(*ks), lambda: self._fallback.delete(*ks)
        )

    async def incr(self, key: str) -> int:
        k = self._key(key)
        return await self._call("incr", lambda: self._redis.incr(k), lambda: self._fallback.incr(k))

    async def expire(self, key: str, ttl: int) -> bool:
        k = self._key(key)
        return await self._call(
            "expire", lambda: self._redis.expire(k, ttl), lambda: self._fallback.expire(k, ttl)
        )

    async def ttl(self, key: str) -> int:
        k = self._key(key)
        return await self._call("ttl", lambda: self._redis.ttl(k), lambda: self._fallback.ttl(k))

    async def keys(self, pattern: str = "*") -> list[str]:
        """Matching keys with the namespace prefix stripped."""
        full_pattern = self._key(pattern)
        found = await self._call(
            "keys",
            lambda: self._redis.keys(full_pattern),
            lambda: self._fallback.keys(full_pattern),
        )
        offset = len(self.namespace) + 1
        return [key[offset:] for key in found]

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching ``pattern``; zero matches is not an error."""
        matched = await self.keys(pattern)
        if not matched:
            return 0
        return await self.delete(*matched)

    async def flush_all(self) -> None:
        """Remove every key in this namespace from Redis and the fallback store."""
        await self._fallback.flush_all()
        if await self.is_shared_available():
            try:
                keys = await self._redis.keys(self._key("*"))
                if keys:
                    await self._redis.delete(*keys)
            except CacheBackendError as e:
                self._mark_down("flush_all", e)

    def stats(self) -> dict[str, Any]:
        return {
            "namespace": self.namespace,
            "backend": self.backend,
            "failovers": self._failovers,
            "fallback": self._fallback.stats(),
        }
