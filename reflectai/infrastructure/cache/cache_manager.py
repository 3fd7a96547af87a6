#!/usr/bin/env python3
"""
Response Cache

Architecture:
    ResponseCache (Public API)
        ├── KeyValueStore (Redis, or the in-memory fallback store during outages)
        └── CacheObserver (Metrics & logging)

Contract:
    - generate_cache_key(prefix, params): params serialized with sorted keys,
      hashed with MD5 (fixed width) -> "{prefix}:{digest}"
    - get(key): value or None; absence, a corrupt payload and a backend
      error are all reported as the same miss
    - get_or_set(key, fn, ttl): a caching failure never prevents returning
      the generator's result
    - del_by_pattern(glob): succeeds even when nothing matches

Backend errors never leave this module; they are logged and counted.
"""

import hashlib
import inspect
from collections.abc import Callable
from typing import Any

import orjson

from reflectai.core.config.constants import CACHE_PREFIX_AI, Stage
from reflectai.core.exceptions import CacheBackendError
from reflectai.core.logging.logger import get_logger, log_stage
from reflectai.infrastructure.cache.kv_store import KeyValueStore

logger = get_logger(__name__)


def generate_cache_key(prefix: str, params: Any) -> str:
    """
    Deterministic cache key for semantically equivalent inputs.

    ``{"a": 1, "b": 2}`` and ``{"b": 2, "a": 1}`` produce the same key.

    Uses MD5 for fast hashing (collision risk acceptable for cache).
    """
    payload = orjson.dumps(params, option=orjson.OPT_SORT_KEYS)
    digest = hashlib.md5(payload).hexdigest()
    return f"{prefix}:{digest}"


# =============================================================================
# OBSERVABILITY
# =============================================================================


class CacheObserver:
    """
    Tracks cache performance metrics and logs operations.

    Metrics Tracked:
    - hits, misses, sets
    - backend errors absorbed
    - hit rate
    """

    def __init__(self, logger_instance=None):
        self._logger = logger_instance or logger
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._errors = 0

    def record_hit(self, key: str) -> None:
        self._hits += 1
        log_stage(self._logger, Stage.CACHE_LOOKUP, "Cache hit", level="debug", cache_key=key[:40])

    def record_miss(self, key: str) -> None:
        self._misses += 1
        log_stage(self._logger, Stage.CACHE_LOOKUP, "Cache miss", level="debug", cache_key=key[:40])

    def record_set(self, key: str, ttl: int | None) -> None:
        self._sets += 1
        log_stage(self._logger, Stage.CACHE_STORE, "Cache set", level="debug", cache_key=key[:40], ttl=ttl)

    def record_error(self, operation: str, key: str, error: Exception) -> None:
        self._errors += 1
        log_stage(
            self._logger,
            Stage.CACHE_LOOKUP,
            "Cache operation failed",
            level="warning",
            operation=operation,
            cache_key=key[:40],
            error_type=type(error).__name__,
            error=str(error),
        )

    def get_stats(self) -> dict[str, Any]:
        total = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "sets": self._sets,
            "errors": self._errors,
            "total_requests": total,
            "hit_rate": round(self._hits / total, 3) if total > 0 else 0.0,
        }


# =============================================================================
# PUBLIC API
# =============================================================================


class ResponseCache:
    """
    Response cache over the shared store / fallback store.

    Usage:
        cache = ResponseCache(store, default_ttl=3600, ai_response_ttl=86400)

        key = cache.generate_cache_key("prompt", {"model": "gpt-4o", "input": text})
        value = await cache.get_or_set(key, lambda: expensive(), ttl=600)
    """

    generate_cache_key = staticmethod(generate_cache_key)

    def __init__(
        self,
        store: KeyValueStore,
        default_ttl: int = 3600,
        ai_response_ttl: int = 86400,
        enabled: bool = True,
    ):
        self._store = store
        self.default_ttl = default_ttl
        self.ai_response_ttl = ai_response_ttl
        self.enabled = enabled
        self._observer = CacheObserver()

    @classmethod
    def from_settings(cls, store: KeyValueStore, settings) -> "ResponseCache":
        cache = settings.cache
        return cls(
            store,
            default_ttl=cache.CACHE_DEFAULT_TTL,
            ai_response_ttl=cache.CACHE_AI_RESPONSE_TTL,
            enabled=cache.CACHE_ENABLED,
        )

    # -------------------------------------------------------------------------
    # Basic operations
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        """Cached value, or None on miss, corrupt payload or backend error."""
        if not self.enabled:
            return None

        try:
            raw = await self._store.get(key)
        except CacheBackendError as e:
            self._observer.record_error("get", key, e)
            return None

        if raw is None:
            self._observer.record_miss(key)
            return None

        try:
            value = orjson.loads(raw)
        except (orjson.JSONDecodeError, TypeError) as e:
            self._observer.record_error("decode", key, e)
            return None

        self._observer.record_hit(key)
        return value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """
        Store ``value``. ``ttl`` defaults to the general TTL; ``ttl <= 0``
        stores without expiry.
        """
        if not self.enabled:
            return False

        ttl = self.default_ttl if ttl is None else ttl
        try:
            payload = orjson.dumps(value).decode()
            await self._store.set(key, payload, ttl=ttl if ttl > 0 else None)
        except (CacheBackendError, TypeError) as e:
            self._observer.record_error("set", key, e)
            return False

        self._observer.record_set(key, ttl)
        return True

    async def delete(self, key: str) -> bool:
        try:
            return await self._store.delete(key) > 0
        except CacheBackendError as e:
            self._observer.record_error("delete", key, e)
            return False

    async def get_or_set(
        self, key: str, generator_fn: Callable[[], Any], ttl: int | None = None
    ) -> Any:
        """
        Cache-aside: return the cached value, or run ``generator_fn`` and cache
        its result. ``generator_fn`` may be sync or async; its errors propagate.
        """
        cached = await self.get(key)
        if cached is not None:
            return cached

        value = generator_fn()
        if inspect.isawaitable(value):
            value = await value

        if value is not None:
            await self.set(key, value, ttl)
        return value

    async def del_by_pattern(self, pattern: str) -> bool:
        """Delete all keys matching a glob pattern. True even when none match."""
        try:
            deleted = await self._store.delete_pattern(pattern)
        except CacheBackendError as e:
            self._observer.record_error("del_by_pattern", pattern, e)
            return False

        logger.info("Cache pattern invalidated", stage=Stage.CACHE_STORE, pattern=pattern, deleted=deleted)
        return True

    async def clear(self) -> bool:
        """Remove every cache entry."""
        try:
            await self._store.flush_all()
        except CacheBackendError as e:
            self._observer.record_error("clear", "*", e)
            return False

        logger.info("Cache cleared", stage=Stage.ADMIN)
        return True

    # -------------------------------------------------------------------------
    # AI responses
    # -------------------------------------------------------------------------

    def ai_cache_key(
        self,
        user_input: str,
        persona_id: str | None = None,
        room_id: str | None = None,
        system_prompt: str | None = None,
    ) -> str:
        """
        Key for a canonical (non-streaming) AI response.

        Input is normalized (lowercased, trimmed). Without a persona the system
        prompt becomes part of the key so different prompts never collide.
        """
        params: dict[str, Any] = {
            "input": user_input.lower().strip(),
            "personaId": persona_id,
            "roomId": room_id,
        }
        if persona_id is None and system_prompt:
            params["systemPrompt"] = system_prompt
        return generate_cache_key(CACHE_PREFIX_AI, params)

    async def cached_ai_response(
        self,
        user_input: str,
        persona_id: str | None,
        room_id: str | None,
        generate_fn: Callable[[], Any],
        system_prompt: str | None = None,
    ) -> tuple[Any, bool]:
        """
        Cache-aside over the AI key with the AI-response TTL.

        Returns ``(value, hit)``. Only a dict carrying ``text`` counts as a
        hit; anything else under the key is regenerated and overwritten.
        """
        key = self.ai_cache_key(user_input, persona_id, room_id, system_prompt)

        cached = await self.get(key)
        if isinstance(cached, dict) and "text" in cached:
            return cached, True

        value = generate_fn()
        if inspect.isawaitable(value):
            value = await value

        if value is not None:
            await self.set(key, value, self.ai_response_ttl)
        return value, False

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    async def is_shared_available(self) -> bool:
        return await self._store.is_shared_available()

    def stats(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "default_ttl": self.default_ttl,
            "ai_response_ttl": self.ai_response_ttl,
            **self._observer.get_stats(),
            "store": self._store.stats(),
        }
