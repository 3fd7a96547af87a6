"""
LLM Provider Catalog

Immutable description of every provider and its models, plus registration
of the matching adapters with the provider factory at startup.

A provider is available only when its credentials are configured. Model
``priority`` is global across providers: lower is preferred.
"""

from dataclasses import dataclass

from reflectai.core.config.constants import (
    CAPABILITY_BASIC_REASONING,
    CAPABILITY_COMPLEX_INSTRUCTIONS,
    CAPABILITY_HIGH_REASONING,
    CAPABILITY_LARGE_CONTEXT,
    CAPABILITY_NUANCED_RESPONSE,
    CAPABILITY_STANDARD_INSTRUCTIONS,
    LLMProvider,
)
from reflectai.core.logging.logger import get_logger
from reflectai.llm_providers.base_provider import ProviderConfig, ProviderFactory
from reflectai.llm_providers.fake_provider import FakeProvider
from reflectai.llm_providers.openai_provider import OpenAICompatibleProvider

logger = get_logger(__name__)


@dataclass(frozen=True)
class ModelDescriptor:
    name: str
    context_window_tokens: int
    cost_per_1k_tokens: float
    priority: int
    capabilities: frozenset[str]


@dataclass(frozen=True)
class ProviderDescriptor:
    """
    Attributes:
        name: Provider name (also the circuit breaker name)
        available: True when credentials are configured
        models: Models in catalog order
        default_model: Used for failover and degraded selection
    """

    name: str
    available: bool
    models: tuple[ModelDescriptor, ...]
    default_model: str

    def get_model(self, name: str) -> ModelDescriptor | None:
        for model in self.models:
            if model.name == name:
                return model
        return None


_HIGH_TIER = frozenset(
    {
        CAPABILITY_HIGH_REASONING,
        CAPABILITY_COMPLEX_INSTRUCTIONS,
        CAPABILITY_NUANCED_RESPONSE,
        CAPABILITY_LARGE_CONTEXT,
    }
)
_STANDARD_TIER = frozenset(
    {CAPABILITY_BASIC_REASONING, CAPABILITY_STANDARD_INSTRUCTIONS, CAPABILITY_LARGE_CONTEXT}
)

OPENAI_MODELS = (
    ModelDescriptor("gpt-4o", 128000, 0.005, 1, _HIGH_TIER),
    ModelDescriptor("gpt-4o-mini", 128000, 0.00015, 3, _STANDARD_TIER),
)

DEEPSEEK_MODELS = (
    ModelDescriptor(
        "deepseek-reasoner",
        64000,
        0.00055,
        2,
        frozenset({CAPABILITY_HIGH_REASONING, CAPABILITY_COMPLEX_INSTRUCTIONS}),
    ),
    ModelDescriptor(
        "deepseek-chat",
        64000,
        0.00027,
        4,
        frozenset({CAPABILITY_BASIC_REASONING, CAPABILITY_STANDARD_INSTRUCTIONS}),
    ),
)

FAKE_MODELS = (ModelDescriptor("fake-model", 32000, 0.0, 10, _STANDARD_TIER),)


def build_catalog(settings) -> dict[str, ProviderDescriptor]:
    """Provider descriptors in preference order, availability from settings."""
    llm = settings.llm
    catalog = {
        LLMProvider.OPENAI.value: ProviderDescriptor(
            name=LLMProvider.OPENAI.value,
            available=bool(llm.OPENAI_API_KEY),
            models=OPENAI_MODELS,
            default_model="gpt-4o-mini",
        ),
        LLMProvider.DEEPSEEK.value: ProviderDescriptor(
            name=LLMProvider.DEEPSEEK.value,
            available=bool(llm.DEEPSEEK_API_KEY),
            models=DEEPSEEK_MODELS,
            default_model="deepseek-chat",
        ),
    }
    if llm.FAKE_PROVIDER_ENABLED:
        catalog[LLMProvider.FAKE.value] = ProviderDescriptor(
            name=LLMProvider.FAKE.value,
            available=True,
            models=FAKE_MODELS,
            default_model="fake-model",
        )
    return catalog


def register_providers(factory: ProviderFactory, settings) -> None:
    """Register an adapter for every provider whose credentials are configured."""
    llm = settings.llm

    if llm.OPENAI_API_KEY:
        factory.register(
            name=LLMProvider.OPENAI.value,
            provider_class=OpenAICompatibleProvider,
            config=ProviderConfig(
                name=LLMProvider.OPENAI.value,
                api_key=llm.OPENAI_API_KEY,
                base_url=llm.OPENAI_BASE_URL,
                timeout=llm.PROVIDER_REQUEST_TIMEOUT,
                default_model="gpt-4o-mini",
            ),
        )

    if llm.DEEPSEEK_API_KEY:
        factory.register(
            name=LLMProvider.DEEPSEEK.value,
            provider_class=OpenAICompatibleProvider,
            config=ProviderConfig(
                name=LLMProvider.DEEPSEEK.value,
                api_key=llm.DEEPSEEK_API_KEY,
                base_url=llm.DEEPSEEK_BASE_URL,
                timeout=llm.PROVIDER_REQUEST_TIMEOUT,
                default_model="deepseek-chat",
            ),
        )

    if llm.FAKE_PROVIDER_ENABLED:
        factory.register(
            name=LLMProvider.FAKE.value,
            provider_class=FakeProvider,
            config=ProviderConfig(
                name=LLMProvider.FAKE.value,
                api_key="fake-key",
                base_url="fake-url",
                default_model="fake-model",
            ),
        )

    if not factory.get_available():
        logger.warning("No LLM providers configured")
