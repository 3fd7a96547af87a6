"""
LLM Providers Module

Vendor adapters behind a single provider interface.

NOTE: provider_service is not imported here to avoid circular imports with
the provider catalog. Import it directly:
    from reflectai.llm_providers.provider_service import ProviderService
"""

from .base_provider import (
    BaseProvider,
    CompletionRequest,
    CompletionResult,
    ProviderConfig,
    ProviderFactory,
)
from .fake_provider import FakeProvider
from .openai_provider import OpenAICompatibleProvider

__all__ = [
    "BaseProvider",
    "CompletionRequest",
    "CompletionResult",
    "FakeProvider",
    "OpenAICompatibleProvider",
    "ProviderConfig",
    "ProviderFactory",
]
