#!/usr/bin/env python3
"""
Application Container

Builds every long-lived component exactly once at startup and hands the same
instances to whoever needs them. Nothing in the package keeps module-level
registries; tests build their own container and never share state.

Startup order:
    1. Redis client (a failed connection is logged, not fatal)
    2. Fallback stores (+ sweepers) and namespaced key/value stores
    3. Response cache and rate limiter
    4. Breaker registry, provider adapters, provider service
    5. AI service
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from reflectai.application.services.ai_service import AIService
from reflectai.core.config.constants import REDIS_KEY_CACHE, REDIS_KEY_RATE_LIMIT, Stage
from reflectai.core.config.provider_catalog import (
    ProviderDescriptor,
    build_catalog,
    register_providers,
)
from reflectai.core.config.settings import Settings
from reflectai.core.exceptions import CacheConnectionError
from reflectai.core.logging.logger import get_logger
from reflectai.core.resilience.circuit_breaker import BreakerRegistry
from reflectai.core.resilience.retry import RetryPolicy
from reflectai.infrastructure.cache.cache_manager import ResponseCache
from reflectai.infrastructure.cache.fallback_store import FallbackStore
from reflectai.infrastructure.cache.kv_store import KeyValueStore
from reflectai.infrastructure.cache.redis_client import RedisClient
from reflectai.llm_providers.base_provider import ProviderFactory
from reflectai.llm_providers.provider_service import ProviderService
from reflectai.rate_limiting.rate_limiter import RateLimiter

logger = get_logger(__name__)


@dataclass
class Container:
    settings: Settings
    redis_client: RedisClient | None
    cache_fallback: FallbackStore
    rate_limit_fallback: FallbackStore
    cache: ResponseCache
    rate_limiter: RateLimiter
    breakers: BreakerRegistry
    provider_factory: ProviderFactory
    provider_service: ProviderService
    ai_service: AIService

    async def close(self) -> None:
        await self.cache_fallback.close()
        await self.rate_limit_fallback.close()
        await self.provider_factory.close()
        if self.redis_client is not None:
            await self.redis_client.disconnect()
        logger.info("Container closed", stage=Stage.INITIALIZATION)

    async def status(self) -> dict[str, Any]:
        return {
            "breakers": self.breakers.get_all_states(),
            "providers": self.provider_service.get_provider_status(),
            "cache": self.cache.stats(),
            "rate_limiter": self.rate_limiter.stats(),
            "shared_store": {
                "cache": await self.cache.is_shared_available(),
                "rate_limiter": await self.rate_limiter.is_shared_available(),
            },
        }


async def build_container(
    settings: Settings,
    redis_client: RedisClient | None = None,
    provider_factory: ProviderFactory | None = None,
    catalog: dict[str, ProviderDescriptor] | None = None,
    clock: Callable[[], float] | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    start_sweepers: bool = True,
) -> Container:
    """
    Build the container from settings.

    ``redis_client``, ``provider_factory``, ``catalog``, ``clock`` and
    ``sleep`` can be overridden (tests inject stubs and fakes).
    """
    redis_settings = settings.redis
    if redis_client is None and redis_settings.REDIS_ENABLED:
        redis_client = RedisClient(settings)

    if redis_client is not None and not redis_client.is_connected():
        try:
            await redis_client.connect()
        except CacheConnectionError as e:
            logger.warning(
                "Redis unavailable at startup, using in-memory fallback stores",
                stage=Stage.INITIALIZATION,
                error=str(e),
            )

    sweep_interval = settings.cache.FALLBACK_SWEEP_INTERVAL
    cache_fallback = FallbackStore(REDIS_KEY_CACHE, sweep_interval=sweep_interval, clock=clock)
    rate_limit_fallback = FallbackStore(REDIS_KEY_RATE_LIMIT, sweep_interval=sweep_interval, clock=clock)
    if start_sweepers:
        cache_fallback.start()
        rate_limit_fallback.start()

    recheck = redis_settings.REDIS_RECHECK_INTERVAL
    cache_store = KeyValueStore(REDIS_KEY_CACHE, redis_client, cache_fallback, recheck, clock=clock)
    rate_store = KeyValueStore(REDIS_KEY_RATE_LIMIT, redis_client, rate_limit_fallback, recheck, clock=clock)

    cache = ResponseCache.from_settings(cache_store, settings)
    rate_limiter = RateLimiter.from_settings(rate_store, settings)

    breakers = BreakerRegistry.from_settings(settings, clock=clock)

    if provider_factory is None:
        provider_factory = ProviderFactory()
        register_providers(provider_factory, settings)
    catalog = catalog if catalog is not None else build_catalog(settings)

    provider_service = ProviderService(
        catalog,
        provider_factory,
        breakers,
        retry_policy=RetryPolicy.from_settings(settings),
        request_timeout=settings.llm.PROVIDER_REQUEST_TIMEOUT,
        sleep=sleep,
    )

    ai_service = AIService(
        provider_service,
        cache,
        rate_limiter,
        default_temperature=settings.llm.LLM_DEFAULT_TEMPERATURE,
        default_max_tokens=settings.llm.LLM_DEFAULT_MAX_TOKENS,
    )

    logger.info(
        "Container built",
        stage=Stage.INITIALIZATION,
        providers=[p.name for p in catalog.values() if p.available],
        redis=redis_client is not None and redis_client.is_connected(),
    )

    return Container(
        settings=settings,
        redis_client=redis_client,
        cache_fallback=cache_fallback,
        rate_limit_fallback=rate_limit_fallback,
        cache=cache,
        rate_limiter=rate_limiter,
        breakers=breakers,
        provider_factory=provider_factory,
        provider_service=provider_service,
        ai_service=ai_service,
    )
