#!/usr/bin/env python3
"""
Base Provider Abstract Class

This module defines the ``Provider`` interface every LLM vendor adapter
implements, plus the factory that holds the configured adapters.

Architectural Decision: one interface, one class per vendor
- The selector and failover logic only ever depend on ``BaseProvider``
- Adapters translate vendor SDK errors into the internal exception hierarchy
- Resilience (breaker, retry, timeout) lives outside the adapters
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from reflectai.core.exceptions import ProviderNotAvailableError
from reflectai.core.logging.logger import get_logger

logger = get_logger(__name__)


@dataclass
class ProviderConfig:
    """
    Configuration for an LLM provider.

    Attributes:
        name: Provider name
        api_key: API key for authentication
        base_url: Base URL for API
        timeout: Request timeout in seconds
        default_model: Default model to use
    """

    name: str
    api_key: str
    base_url: str
    timeout: float = 30.0
    default_model: str = ""


@dataclass
class CompletionRequest:
    """One canonical (non-streaming) completion call."""

    model: str
    system_prompt: str
    user_input: str
    temperature: float = 0.7
    max_tokens: int = 1000
    extra: dict[str, Any] = field(default_factory=dict)

    def messages(self) -> list[dict[str, str]]:
        messages = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": self.user_input})
        return messages


@dataclass
class CompletionResult:
    """
    Attributes:
        text: Generated text
        model: Model that produced it
        usage: Token usage (prompt_tokens, completion_tokens, total_tokens)
    """

    text: str
    model: str
    usage: dict[str, int] = field(default_factory=dict)


class BaseProvider(ABC):
    """
    Abstract base class for LLM providers.

    Subclasses must implement:
    - complete(): one completion call, raising internal provider exceptions
    """

    def __init__(self, config: ProviderConfig):
        self.config = config
        self.name = config.name

    @abstractmethod
    async def complete(self, request: CompletionRequest) -> CompletionResult:
        """
        Run one completion.

        Raises:
            ProviderError subclasses (timeout, rate limit, auth, token limit, ...)
        """

    async def health_check(self) -> dict[str, Any]:
        return {"status": "unknown", "provider": self.name}

    async def close(self) -> None:
        """Release client resources."""


class ProviderFactory:
    """
    Holds the provider adapters configured for this process.

    Usage:
        factory = ProviderFactory()
        factory.register("openai", OpenAICompatibleProvider, config)
        provider = factory.get("openai")
        result = await provider.complete(request)
    """

    def __init__(self):
        self._providers: dict[str, BaseProvider] = {}
        self._configs: dict[str, ProviderConfig] = {}
        self._classes: dict[str, type] = {}

    def register(self, name: str, provider_class: type, config: ProviderConfig) -> None:
        self._classes[name] = provider_class
        self._configs[name] = config
        self._providers.pop(name, None)
        logger.info("Registered provider", provider=name)

    def register_instance(self, provider: BaseProvider) -> None:
        """Register an already-built adapter (tests, custom vendors)."""
        self._classes[provider.name] = type(provider)
        self._configs[provider.name] = provider.config
        self._providers[provider.name] = provider
        logger.info("Registered provider", provider=provider.name)

    def get(self, name: str) -> BaseProvider:
        """
        Get or lazily create a provider.

        Raises:
            ProviderNotAvailableError: If provider not registered
        """
        if name not in self._classes:
            raise ProviderNotAvailableError(
                f"Provider not registered: {name}", details={"provider": name}
            )

        if name not in self._providers:
            self._providers[name] = self._classes[name](self._configs[name])

        return self._providers[name]

    def has(self, name: str) -> bool:
        return name in self._classes

    def get_available(self) -> list[str]:
        return list(self._classes.keys())

    async def close(self) -> None:
        for provider in self._providers.values():
            await provider.close()
