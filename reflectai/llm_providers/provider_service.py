#!/usr/bin/env python3
"""
LLM Provider Service: Model Selection and Failover

Chooses a provider+model for a prompt and executes the call with full
resilience.

SELECTION (select_model):
-------------------------
1. Estimate tokens as ceil(len(system_prompt + user_input) / 4)
2. An explicit, available provider+model whose context window fits wins
3. Otherwise score input complexity (low / medium / high)
4. Candidates = available providers whose circuit is not OPEN; if none are
   healthy the first available provider is used anyway (its breaker fails
   fast if it is truly down)
5. Among candidate models that fit the estimate and satisfy the complexity
   tier, the lowest ``priority`` wins
6. Nothing qualifies: the first candidate's default model (degraded)

An input larger than every available model's context window raises
``NoSuitableModelError`` instead of a generic provider failure.

EXECUTION (generate_response):
------------------------------
    retry(backoff) -> breaker[provider].execute -> timeout -> provider.complete

Every attempt is counted by the provider's breaker. Authentication errors
surface immediately. Any other final failure triggers ONE failover attempt
to the default model of the first other available provider whose circuit is
not OPEN (no retry), before ``AllProvidersExhaustedError`` is raised.
"""

import asyncio
import math
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from reflectai.core.config.constants import (
    CAPABILITY_COMPLEX_INSTRUCTIONS,
    CAPABILITY_HIGH_REASONING,
    CHARS_PER_TOKEN,
    COMPLEXITY_AVG_WORD_LENGTH_THRESHOLDS,
    COMPLEXITY_HIGH_SCORE,
    COMPLEXITY_LENGTH_THRESHOLDS,
    COMPLEXITY_LONG_WORD_MIN_LENGTH,
    COMPLEXITY_LONG_WORD_THRESHOLDS,
    COMPLEXITY_MEDIUM_SCORE,
    COMPLEXITY_QUESTION_THRESHOLDS,
    COMPLEXITY_SENTENCE_THRESHOLDS,
    Complexity,
    Stage,
)
from reflectai.core.config.provider_catalog import ModelDescriptor, ProviderDescriptor
from reflectai.core.exceptions import (
    AllProvidersExhaustedError,
    CircuitOpenError,
    NoSuitableModelError,
    ProviderAuthenticationError,
    ProviderTimeoutError,
    TokenLimitError,
)
from reflectai.core.logging.logger import get_logger, log_stage
from reflectai.core.resilience.circuit_breaker import BreakerRegistry
from reflectai.core.resilience.retry import RetryPolicy, with_retry
from reflectai.llm_providers.base_provider import (
    BaseProvider,
    CompletionRequest,
    CompletionResult,
    ProviderFactory,
)

logger = get_logger(__name__)

_SENTENCE_RE = re.compile(r"[.!?]+")
_LONG_WORD_RE = re.compile(r"\b[A-Za-z]{%d,}\b" % COMPLEXITY_LONG_WORD_MIN_LENGTH)


@dataclass(frozen=True)
class ModelSelection:
    provider: str
    model: str
    estimated_tokens: int
    complexity: Complexity | None = None
    degraded: bool = False


@dataclass
class GenerationOptions:
    temperature: float = 0.7
    max_tokens: int = 1000
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class GenerationResult:
    text: str
    provider: str
    model: str
    usage: dict[str, int] = field(default_factory=dict)
    failover: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "provider": self.provider,
            "model": self.model,
            "usage": dict(self.usage),
            "failover": self.failover,
        }


# =============================================================================
# Input analysis
# =============================================================================


def estimate_tokens(text: str) -> int:
    """Rough token estimate: one token per four characters."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def _factor(value: float, thresholds: tuple[float, float]) -> int:
    medium, high = thresholds
    if value > high:
        return 2
    if value > medium:
        return 1
    return 0


def calculate_complexity(user_input: str) -> Complexity:
    """
    Score input complexity from length, sentence count, average word
    length, question marks and long words; each contributes 0, 1 or 2.

    Sentences are runs of terminal punctuation, so an unterminated last
    sentence is not counted. Average word length is the full length
    (whitespace included) over the whitespace-separated word count.
    """
    text = user_input or ""
    if not text:
        return Complexity.LOW

    word_count = len(text.split()) or 1
    avg_word_length = len(text) / word_count

    score = (
        _factor(len(text), COMPLEXITY_LENGTH_THRESHOLDS)
        + _factor(len(_SENTENCE_RE.findall(text)), COMPLEXITY_SENTENCE_THRESHOLDS)
        + _factor(avg_word_length, COMPLEXITY_AVG_WORD_LENGTH_THRESHOLDS)
        + _factor(text.count("?"), COMPLEXITY_QUESTION_THRESHOLDS)
        + _factor(len(_LONG_WORD_RE.findall(text)), COMPLEXITY_LONG_WORD_THRESHOLDS)
    )

    if score >= COMPLEXITY_HIGH_SCORE:
        return Complexity.HIGH
    if score >= COMPLEXITY_MEDIUM_SCORE:
        return Complexity.MEDIUM
    return Complexity.LOW


def is_model_suitable(model: ModelDescriptor, complexity: Complexity) -> bool:
    """high needs both reasoning tags, medium needs either, low takes any."""
    has_reasoning = CAPABILITY_HIGH_REASONING in model.capabilities
    has_instructions = CAPABILITY_COMPLEX_INSTRUCTIONS in model.capabilities
    if complexity == Complexity.HIGH:
        return has_reasoning and has_instructions
    if complexity == Complexity.MEDIUM:
        return has_reasoning or has_instructions
    return True


# =============================================================================
# Service
# =============================================================================


class ProviderService:
    """
    Provider selection, resilient execution and failover.

    Usage:
        service = ProviderService(catalog, factory, breakers, RetryPolicy())
        selection = service.select_model(system_prompt, user_input)
        result = await service.generate_response(
            selection.provider, selection.model, system_prompt, user_input
        )
    """

    def __init__(
        self,
        catalog: dict[str, ProviderDescriptor],
        factory: ProviderFactory,
        breakers: BreakerRegistry,
        retry_policy: RetryPolicy | None = None,
        request_timeout: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._catalog = dict(catalog)
        self._factory = factory
        self._breakers = breakers
        self._retry_policy = retry_policy or RetryPolicy()
        self._request_timeout = request_timeout
        self._sleep = sleep

        for name in self._catalog:
            self._breakers.get_or_create(name)

    # -------------------------------------------------------------------------
    # Catalog views
    # -------------------------------------------------------------------------

    def available_providers(self) -> list[ProviderDescriptor]:
        return [p for p in self._catalog.values() if p.available]

    def _is_healthy(self, provider: ProviderDescriptor) -> bool:
        return not self._breakers.is_open(provider.name)

    # -------------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------------

    def select_model(
        self,
        system_prompt: str,
        user_input: str,
        preferred_provider: str | None = None,
        preferred_model: str | None = None,
    ) -> ModelSelection:
        """
        Pick a provider and model for the prompt.

        Raises:
            AllProvidersExhaustedError: No provider is configured
            NoSuitableModelError: Input exceeds every available context window
        """
        available = self.available_providers()
        if not available:
            raise AllProvidersExhaustedError("No AI providers are configured")

        tokens = estimate_tokens((system_prompt or "") + (user_input or ""))

        explicit = self._explicit_choice(available, tokens, preferred_provider, preferred_model)
        if explicit is not None:
            return explicit

        largest = max(m.context_window_tokens for p in available for m in p.models)
        if tokens > largest:
            raise NoSuitableModelError(
                f"Input of ~{tokens} tokens exceeds every available model's context window",
                details={"estimated_tokens": tokens, "largest_context_window": largest},
            )

        complexity = calculate_complexity(user_input)

        healthy = [p for p in available if self._is_healthy(p)]
        if preferred_provider:
            preferred = [p for p in healthy if p.name == preferred_provider]
            healthy = preferred or healthy
        if healthy:
            candidates = healthy
        else:
            candidates = [available[0]]
            log_stage(
                logger,
                Stage.PROVIDER_SELECTION,
                "All provider circuits open, using first available provider",
                level="warning",
                provider=available[0].name,
            )

        best: tuple[ProviderDescriptor, ModelDescriptor] | None = None
        for provider in candidates:
            for model in provider.models:
                if tokens > model.context_window_tokens or not is_model_suitable(model, complexity):
                    continue
                if best is None or model.priority < best[1].priority:
                    best = (provider, model)

        if best is not None:
            provider, model = best
            log_stage(
                logger,
                Stage.PROVIDER_SELECTION,
                "Model selected",
                provider=provider.name,
                model=model.name,
                complexity=complexity.value,
                estimated_tokens=tokens,
            )
            return ModelSelection(provider.name, model.name, tokens, complexity)

        fallback = candidates[0]
        log_stage(
            logger,
            Stage.PROVIDER_SELECTION,
            "No ideal model found for input, using default",
            level="warning",
            provider=fallback.name,
            model=fallback.default_model,
            complexity=complexity.value,
            estimated_tokens=tokens,
        )
        return ModelSelection(fallback.name, fallback.default_model, tokens, complexity, degraded=True)

    def _explicit_choice(
        self,
        available: list[ProviderDescriptor],
        tokens: int,
        preferred_provider: str | None,
        preferred_model: str | None,
    ) -> ModelSelection | None:
        if not preferred_model:
            return None
        for provider in available:
            if preferred_provider and provider.name != preferred_provider:
                continue
            model = provider.get_model(preferred_model)
            if model is not None and tokens <= model.context_window_tokens:
                return ModelSelection(provider.name, model.name, tokens)
        return None

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def _timed_complete(self, provider: BaseProvider, request: CompletionRequest) -> CompletionResult:
        try:
            return await asyncio.wait_for(provider.complete(request), timeout=self._request_timeout)
        except asyncio.TimeoutError as e:
            raise ProviderTimeoutError(
                f"{provider.name} did not respond within {self._request_timeout}s",
                details={"provider": provider.name, "model": request.model, "timeout": self._request_timeout},
            ) from e

    async def _attempt(self, provider_name: str, request: CompletionRequest) -> CompletionResult:
        provider = self._factory.get(provider_name)
        breaker = self._breakers.get_or_create(provider_name)
        return await breaker.execute(lambda: self._timed_complete(provider, request))

    async def generate_response(
        self,
        provider: str,
        model: str,
        system_prompt: str,
        user_input: str,
        options: GenerationOptions | None = None,
    ) -> GenerationResult:
        """
        Execute the call with breaker, retry and a single failover attempt.

        Raises:
            ProviderAuthenticationError: Credentials rejected (no retry, no failover)
            AllProvidersExhaustedError: Primary and failover both failed
            ProviderError: Primary failed and no alternate provider exists
        """
        options = options or GenerationOptions()
        request = self._build_request(model, system_prompt, user_input, options)

        log_stage(logger, Stage.LLM_CALL, "Calling provider", provider=provider, model=model)
        try:
            result = await with_retry(
                self._retry_policy, lambda: self._attempt(provider, request), sleep=self._sleep
            )
            return GenerationResult(result.text, provider, result.model, result.usage)
        except ProviderAuthenticationError:
            raise
        except Exception as primary_error:
            return await self._failover(provider, system_prompt, user_input, options, primary_error)

    async def _failover(
        self,
        failed_provider: str,
        system_prompt: str,
        user_input: str,
        options: GenerationOptions,
        primary_error: Exception,
    ) -> GenerationResult:
        alternate = self._find_alternate(failed_provider)
        if alternate is None:
            log_stage(
                logger,
                Stage.FAILOVER,
                "No alternate provider available",
                level="error",
                provider=failed_provider,
                error_type=type(primary_error).__name__,
            )
            if isinstance(primary_error, CircuitOpenError):
                raise AllProvidersExhaustedError(
                    "All AI providers are unavailable",
                    details={"primary": failed_provider, "primary_error": primary_error.to_dict()},
                ) from primary_error
            raise primary_error

        log_stage(
            logger,
            Stage.FAILOVER,
            "Primary provider failed, trying alternate",
            level="warning",
            provider=failed_provider,
            alternate=alternate.name,
            model=alternate.default_model,
            error_type=type(primary_error).__name__,
        )
        request = self._build_request(alternate.default_model, system_prompt, user_input, options)
        try:
            result = await self._attempt(alternate.name, request)
        except Exception as failover_error:
            if isinstance(primary_error, TokenLimitError) and isinstance(failover_error, TokenLimitError):
                raise failover_error
            log_stage(
                logger,
                Stage.FAILOVER,
                "Failover attempt failed",
                level="error",
                provider=alternate.name,
                error_type=type(failover_error).__name__,
            )
            raise AllProvidersExhaustedError(
                "All AI providers are unavailable",
                details={
                    "primary": failed_provider,
                    "primary_error": type(primary_error).__name__,
                    "failover": alternate.name,
                    "failover_error": type(failover_error).__name__,
                },
            ) from failover_error

        return GenerationResult(result.text, alternate.name, result.model, result.usage, failover=True)

    def _find_alternate(self, failed_provider: str) -> ProviderDescriptor | None:
        for provider in self.available_providers():
            if provider.name == failed_provider or not self._factory.has(provider.name):
                continue
            if self._is_healthy(provider):
                return provider
        return None

    @staticmethod
    def _build_request(
        model: str, system_prompt: str, user_input: str, options: GenerationOptions
    ) -> CompletionRequest:
        return CompletionRequest(
            model=model,
            system_prompt=system_prompt or "",
            user_input=user_input,
            temperature=options.temperature,
            max_tokens=options.max_tokens,
            extra=dict(options.extra),
        )

    # -------------------------------------------------------------------------
    # Observability
    # -------------------------------------------------------------------------

    def get_provider_status(self) -> list[dict[str, Any]]:
        status = []
        for provider in self._catalog.values():
            breaker = self._breakers.get_or_create(provider.name)
            status.append(
                {
                    "name": provider.name,
                    "available": provider.available,
                    "registered": self._factory.has(provider.name),
                    "circuit_state": breaker.get_state().value,
                    "models": [model.name for model in provider.models],
                    "default_model": provider.default_model,
                }
            )
        return status
