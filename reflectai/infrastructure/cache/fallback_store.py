"""
In-Memory Fallback Store

Minimal key/value store used by the response cache and the rate limiter when
Redis is unreachable. Same contract as the shared store: get, set with
optional TTL, delete, incr, expire, ttl, keys(glob) and flush_all.

Internals:
- a value map plus a parallel expiry map (absolute deadlines)
- every read path checks expiry first and evicts lazily
- a background sweep (default every 5 minutes) evicts expired entries to
  bound memory
- one asyncio.Lock serializes mutations so concurrent increments are never lost

Architectural Decision: the store is per process. During a Redis outage each
instance counts and caches on its own, trading cross-instance consistency for
availability. No migration happens when Redis comes back; callers simply
return to the shared store.
"""

import asyncio
import time
from collections.abc import Callable
from fnmatch import fnmatchcase
from typing import Any

from reflectai.core.config.constants import Stage
from reflectai.core.logging.logger import get_logger

logger = get_logger(__name__)


class FallbackStore:
    """
    Async in-memory key/value store with TTL support.

    Usage:
        store = FallbackStore(sweep_interval=300)
        store.start()

        await store.set("cache:abc", "value", ttl=3600)
        count = await store.incr("ratelimit:ai:user:42")

        await store.close()
    """

    def __init__(
        self,
        name: str = "fallback",
        sweep_interval: float = 300.0,
        clock: Callable[[], float] | None = None,
    ):
        self.name = name
        self._sweep_interval = sweep_interval
        self._clock = clock or time.monotonic
        self._data: dict[str, Any] = {}
        self._expiry: dict[str, float] = {}
        self._lock = asyncio.Lock()
        self._sweeper: asyncio.Task | None = None
        self._evictions = 0

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start the periodic expiry sweep (requires a running event loop)."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_loop(), name=f"{self.name}-sweeper")
            logger.info(
                "Fallback store sweeper started",
                stage=Stage.FALLBACK_STORE,
                store=self.name,
                interval=self._sweep_interval,
            )

    async def close(self) -> None:
        """Stop the sweeper task."""
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            await self.sweep()

    async def sweep(self) -> int:
        """Evict every expired entry and return how many were removed."""
        async with self._lock:
            now = self._clock()
            expired = [key for key, deadline in self._expiry.items() if deadline <= now]
            for key in expired:
                self._evict(key)

        if expired:
            logger.debug(
                "Fallback store swept expired keys",
                stage=Stage.FALLBACK_STORE,
                store=self.name,
                evicted=len(expired),
            )
        return len(expired)

    # -------------------------------------------------------------------------
    # Internal helpers (caller holds the lock)
    # -------------------------------------------------------------------------

    def _evict(self, key: str) -> None:
        self._data.pop(key, None)
        self._expiry.pop(key, None)
        self._evictions += 1

    def _is_expired(self, key: str) -> bool:
        deadline = self._expiry.get(key)
        if deadline is not None and deadline <= self._clock():
            self._evict(key)
            return True
        return False

    def _live(self, key: str) -> bool:
        return key in self._data and not self._is_expired(key)

    # -------------------------------------------------------------------------
    # Key/value contract
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        async with self._lock:
            if not self._live(key):
                return None
            return self._data[key]

    async def set(self, key: str, value: Any, ttl: float | None = None) -> bool:
        """Store ``value``; expires after ``ttl`` seconds when ttl > 0, else never."""
        async with self._lock:
            self._data[key] = value
            if ttl is not None and ttl > 0:
                self._expiry[key] = self._clock() + ttl
            else:
                self._expiry.pop(key, None)
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        async with self._lock:
            for key in keys:
                if self._live(key):
                    removed += 1
                self._data.pop(key, None)
                self._expiry.pop(key, None)
        return removed

    async def incr(self, key: str) -> int:
        """
        Atomically increment an integer counter.

        A missing key starts at 1. A non-numeric value is replaced by 1 and a
        warning is logged. An existing expiry is kept.
        """
        async with self._lock:
            if not self._live(key):
                self._data[key] = 1
                return 1

            current = self._data[key]
            try:
                value = int(current) + 1
            except (TypeError, ValueError):
                logger.warning(
                    "Non-numeric value replaced on increment",
                    stage=Stage.FALLBACK_STORE,
                    store=self.name,
                    key=key,
                )
                value = 1
            self._data[key] = value
            return value

    async def expire(self, key: str, ttl: float) -> bool:
        """Set a TTL on an existing key. Returns False if the key does not exist."""
        async with self._lock:
            if not self._live(key):
                return False
            if ttl <= 0:
                self._evict(key)
                return True
            self._expiry[key] = self._clock() + ttl
            return True

    async def ttl(self, key: str) -> int:
        """Remaining seconds; -2 when missing and -1 when the key never expires."""
        async with self._lock:
            if not self._live(key):
                return -2
            deadline = self._expiry.get(key)
            if deadline is None:
                return -1
            return max(0, int(round(deadline - self._clock())))

    async def keys(self, pattern: str = "*") -> list[str]:
        """Return live keys matching a glob pattern (``*``, ``?``, ``[...]``)."""
        async with self._lock:
            candidates = [key for key in self._data if fnmatchcase(key, pattern)]
            return [key for key in candidates if not self._is_expired(key)]

    async def flush_all(self) -> None:
        async with self._lock:
            self._data.clear()
            self._expiry.clear()

    def stats(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "entries": len(self._data),
            "entries_with_ttl": len(self._expiry),
            "evictions": self._evictions,
            "sweeper_running": self._sweeper is not None and not self._sweeper.done(),
        }
