#!/usr/bin/env python3
"""
AI Service: the single entry point for AI responses

Control flow for one request:
    1. Rate limiter admits or rejects the caller (when a caller is known)
    2. Response cache is consulted (skipped for streaming calls)
    3. Provider service picks {provider, model}
    4. Call runs inside breaker + retry, with one failover attempt
    5. On success the result is cached and returned

Errors reaching the caller: RateLimitExceededError, IdentityBlockedError,
NoSuitableModelError/TokenLimitError, ProviderAuthenticationError,
AllProvidersExhaustedError, or the primary provider's functional error when
no alternate provider exists. Cache and rate limiter backend failures are
absorbed inside their components.
"""

from dataclasses import dataclass, field
from typing import Any

from reflectai.core.config.constants import RouteClass, Stage
from reflectai.core.logging.logger import get_logger, log_stage
from reflectai.infrastructure.cache.cache_manager import ResponseCache
from reflectai.llm_providers.provider_service import GenerationOptions, GenerationResult, ProviderService
from reflectai.rate_limiting.rate_limiter import RateLimiter, derive_identity

logger = get_logger(__name__)


@dataclass
class AIRequestOptions:
    """
    Per-request context supplied by the caller.

    Attributes:
        caller_id: Authenticated user id (rate limit identity)
        ip_address: Client address, used as identity when there is no user
        persona_id: Persona whose prompt produced ``system_prompt``
        room_id: Room context
        preferred_provider: Provider to favor when healthy
        preferred_model: Explicit model request
        stream: Streaming calls are never served from or written to the cache
    """

    caller_id: str | None = None
    ip_address: str | None = None
    persona_id: str | None = None
    room_id: str | None = None
    preferred_provider: str | None = None
    preferred_model: str | None = None
    stream: bool = False
    temperature: float | None = None
    max_tokens: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class AIResponse:
    text: str
    provider: str
    model: str
    usage: dict[str, int] = field(default_factory=dict)
    cached: bool = False
    failover: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "provider": self.provider,
            "model": self.model,
            "usage": dict(self.usage),
            "cached": self.cached,
            "failover": self.failover,
        }


class AIService:
    """Orchestrates rate limiting, caching, model selection and generation."""

    def __init__(
        self,
        provider_service: ProviderService,
        cache: ResponseCache,
        rate_limiter: RateLimiter,
        default_temperature: float = 0.7,
        default_max_tokens: int = 1000,
    ):
        self.provider_service = provider_service
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.default_temperature = default_temperature
        self.default_max_tokens = default_max_tokens

    async def get_ai_response(
        self,
        system_prompt: str,
        user_input: str,
        options: AIRequestOptions | None = None,
    ) -> AIResponse:
        options = options or AIRequestOptions()

        if options.caller_id or options.ip_address:
            identity = derive_identity(RouteClass.AI, options.caller_id, options.ip_address)
            await self.rate_limiter.check(RouteClass.AI, identity)

        generated: list[GenerationResult] = []

        async def generate() -> dict[str, Any]:
            selection = self.provider_service.select_model(
                system_prompt,
                user_input,
                preferred_provider=options.preferred_provider,
                preferred_model=options.preferred_model,
            )
            generation = await self.provider_service.generate_response(
                selection.provider,
                selection.model,
                system_prompt,
                user_input,
                GenerationOptions(
                    temperature=options.temperature if options.temperature is not None else self.default_temperature,
                    max_tokens=options.max_tokens or self.default_max_tokens,
                    extra=dict(options.extra),
                ),
            )
            generated.append(generation)
            return {
                "text": generation.text,
                "provider": generation.provider,
                "model": generation.model,
                "usage": generation.usage,
            }

        if options.stream:
            payload, hit = await generate(), False
        else:
            payload, hit = await self.cache.cached_ai_response(
                user_input, options.persona_id, options.room_id, generate, system_prompt
            )

        if hit:
            log_stage(logger, Stage.CACHE_LOOKUP, "Serving cached AI response", provider=payload.get("provider"))

        return AIResponse(
            text=payload["text"],
            provider=payload.get("provider", ""),
            model=payload.get("model", ""),
            usage=payload.get("usage") or {},
            cached=hit,
            failover=bool(generated) and generated[0].failover,
        )
