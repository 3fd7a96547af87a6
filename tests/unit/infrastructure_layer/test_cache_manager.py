"""
Unit Tests for ResponseCache

Tests key generation, TTL handling, miss semantics on corrupt or unavailable
backends, cache-aside behavior and AI response keys.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from reflectai.core.exceptions import CacheConnectionError
from reflectai.infrastructure.cache.cache_manager import ResponseCache, generate_cache_key
from reflectai.infrastructure.cache.kv_store import KeyValueStore


@pytest.mark.unit
class TestCacheKeyGeneration:
    def test_key_ignores_parameter_order(self):
        assert generate_cache_key("prompt", {"a": 1, "b": 2}) == generate_cache_key("prompt", {"b": 2, "a": 1})

    def test_key_format(self):
        key = generate_cache_key("ai", {"input": "hello"})
        prefix, digest = key.split(":")
        assert prefix == "ai"
        assert len(digest) == 32

    def test_different_params_differ(self):
        assert generate_cache_key("ai", {"input": "a"}) != generate_cache_key("ai", {"input": "b"})

    def test_ai_key_normalizes_input(self, response_cache):
        assert response_cache.ai_cache_key("  Hello World ") == response_cache.ai_cache_key("hello world")

    def test_ai_key_includes_persona_and_room(self, response_cache):
        base = response_cache.ai_cache_key("hello")
        assert response_cache.ai_cache_key("hello", persona_id="coach") != base
        assert response_cache.ai_cache_key("hello", room_id="room-1") != base

    def test_ai_key_uses_system_prompt_only_without_persona(self, response_cache):
        assert response_cache.ai_cache_key("hi", system_prompt="A") != response_cache.ai_cache_key(
            "hi", system_prompt="B"
        )
        assert response_cache.ai_cache_key(
            "hi", persona_id="coach", system_prompt="A"
        ) == response_cache.ai_cache_key("hi", persona_id="coach", system_prompt="B")


@pytest.mark.unit
class TestResponseCacheOperations:
    @pytest.mark.asyncio
    async def test_set_then_get_roundtrips_json(self, response_cache):
        value = {"text": "hi", "usage": {"total_tokens": 4}}
        assert await response_cache.set("ai:1", value) is True
        assert await response_cache.get("ai:1") == value

    @pytest.mark.asyncio
    async def test_miss_returns_none(self, response_cache):
        assert await response_cache.get("ai:missing") is None
        assert response_cache.stats()["misses"] == 1

    @pytest.mark.asyncio
    async def test_default_ttl_applies(self, response_cache, memory_cache_store, clock):
        await response_cache.set("k", "v")
        assert await memory_cache_store.ttl("k") == 3600

        clock.advance(3600)
        assert await response_cache.get("k") is None

    @pytest.mark.asyncio
    async def test_explicit_ttl_and_no_expiry(self, response_cache, memory_cache_store):
        await response_cache.set("short", "v", ttl=5)
        await response_cache.set("forever", "v", ttl=0)

        assert await memory_cache_store.ttl("short") == 5
        assert await memory_cache_store.ttl("forever") == -1

    @pytest.mark.asyncio
    async def test_corrupt_payload_is_a_miss(self, response_cache, memory_cache_store):
        await memory_cache_store.set("bad", "{not json")
        assert await response_cache.get("bad") is None
        assert response_cache.stats()["errors"] == 1

    @pytest.mark.asyncio
    async def test_unserializable_value_is_not_cached(self, response_cache):
        assert await response_cache.set("obj", object()) is False

    @pytest.mark.asyncio
    async def test_backend_error_is_a_miss(self):
        store = MagicMock(spec=KeyValueStore)
        store.get = AsyncMock(side_effect=CacheConnectionError("down"))
        store.set = AsyncMock(side_effect=CacheConnectionError("down"))
        cache = ResponseCache(store)

        assert await cache.get("k") is None
        assert await cache.set("k", "v") is False

    @pytest.mark.asyncio
    async def test_disabled_cache(self, memory_cache_store):
        cache = ResponseCache(memory_cache_store, enabled=False)
        assert await cache.set("k", "v") is False
        assert await cache.get("k") is None

    @pytest.mark.asyncio
    async def test_delete(self, response_cache):
        await response_cache.set("k", "v")
        assert await response_cache.delete("k") is True
        assert await response_cache.delete("k") is False

    @pytest.mark.asyncio
    async def test_del_by_pattern(self, response_cache):
        await response_cache.set("ai:1", "a")
        await response_cache.set("ai:2", "b")
        await response_cache.set("prompt:1", "c")

        assert await response_cache.del_by_pattern("ai:*") is True
        assert await response_cache.del_by_pattern("nothing:*") is True
        assert await response_cache.get("ai:1") is None
        assert await response_cache.get("prompt:1") == "c"

    @pytest.mark.asyncio
    async def test_clear(self, response_cache):
        await response_cache.set("ai:1", "a")
        assert await response_cache.clear() is True
        assert await response_cache.get("ai:1") is None


@pytest.mark.unit
class TestGetOrSet:
    @pytest.mark.asyncio
    async def test_generator_runs_once(self, response_cache):
        generator = AsyncMock(return_value={"text": "fresh"})

        first = await response_cache.get_or_set("k", generator)
        second = await response_cache.get_or_set("k", generator)

        assert first == second == {"text": "fresh"}
        generator.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_sync_generator(self, response_cache):
        assert await response_cache.get_or_set("k", lambda: 42) == 42
        assert await response_cache.get("k") == 42

    @pytest.mark.asyncio
    async def test_none_result_is_not_cached(self, response_cache):
        generator = MagicMock(return_value=None)
        await response_cache.get_or_set("k", generator)
        await response_cache.get_or_set("k", generator)
        assert generator.call_count == 2

    @pytest.mark.asyncio
    async def test_generator_error_propagates(self, response_cache):
        async def broken():
            raise RuntimeError("provider down")

        with pytest.raises(RuntimeError):
            await response_cache.get_or_set("k", broken)

    @pytest.mark.asyncio
    async def test_cache_failure_still_returns_result(self):
        store = MagicMock(spec=KeyValueStore)
        store.get = AsyncMock(side_effect=CacheConnectionError("down"))
        store.set = AsyncMock(side_effect=CacheConnectionError("down"))
        cache = ResponseCache(store)

        assert await cache.get_or_set("k", lambda: "value") == "value"

    @pytest.mark.asyncio
    async def test_cached_ai_response_uses_ai_ttl(self, response_cache, memory_cache_store):
        result, hit = await response_cache.cached_ai_response("Hello", None, None, lambda: {"text": "hi"})

        key = response_cache.ai_cache_key("Hello")
        assert (result, hit) == ({"text": "hi"}, False)
        assert await memory_cache_store.ttl(key) == 86400

        again, hit = await response_cache.cached_ai_response("hello ", None, None, lambda: {"text": "other"})
        assert (again, hit) == ({"text": "hi"}, True)

    @pytest.mark.asyncio
    async def test_cached_ai_response_keys_on_system_prompt_without_persona(self, response_cache):
        first, _ = await response_cache.cached_ai_response(
            "hello", None, None, lambda: {"text": "from A"}, system_prompt="prompt A"
        )
        second, hit = await response_cache.cached_ai_response(
            "hello", None, None, lambda: {"text": "from B"}, system_prompt="prompt B"
        )

        assert first == {"text": "from A"}
        assert (second, hit) == ({"text": "from B"}, False)
        assert await response_cache.get(response_cache.ai_cache_key("hello", system_prompt="prompt A")) == first

    @pytest.mark.asyncio
    async def test_cached_ai_response_persona_ignores_system_prompt(self, response_cache):
        await response_cache.cached_ai_response(
            "hello", "coach", None, lambda: {"text": "coach"}, system_prompt="prompt A"
        )
        value, hit = await response_cache.cached_ai_response(
            "hello", "coach", None, lambda: {"text": "other"}, system_prompt="prompt B"
        )

        assert (value, hit) == ({"text": "coach"}, True)

    @pytest.mark.asyncio
    async def test_cached_ai_response_regenerates_malformed_entry(self, response_cache):
        key = response_cache.ai_cache_key("hello")
        await response_cache.set(key, "not a response")

        value, hit = await response_cache.cached_ai_response("hello", None, None, lambda: {"text": "fresh"})

        assert (value, hit) == ({"text": "fresh"}, False)
        assert await response_cache.get(key) == {"text": "fresh"}
