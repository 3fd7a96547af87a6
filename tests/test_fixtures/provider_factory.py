"""
Provider Test Factory

Builds a catalog plus a ProviderFactory holding FakeProvider instances that
stand in for the real vendors, so selection and failover run against the
production model descriptors without network calls.
"""

from reflectai.core.config.provider_catalog import (
    DEEPSEEK_MODELS,
    OPENAI_MODELS,
    ProviderDescriptor,
)
from reflectai.llm_providers.base_provider import ProviderConfig, ProviderFactory
from reflectai.llm_providers.fake_provider import FakeProvider


class ProviderTestFactory:
    """Factory for creating test provider stubs."""

    @staticmethod
    def fake(name: str, default_model: str = "fake-model", **kwargs) -> FakeProvider:
        config = ProviderConfig(
            name=name, api_key="test-key", base_url="http://test", default_model=default_model
        )
        return FakeProvider(config, **kwargs)

    @staticmethod
    def catalog(openai: bool = True, deepseek: bool = True) -> dict[str, ProviderDescriptor]:
        return {
            "openai": ProviderDescriptor("openai", openai, OPENAI_MODELS, "gpt-4o-mini"),
            "deepseek": ProviderDescriptor("deepseek", deepseek, DEEPSEEK_MODELS, "deepseek-chat"),
        }

    @classmethod
    def build(
        cls, openai: bool = True, deepseek: bool = True
    ) -> tuple[dict[str, ProviderDescriptor], ProviderFactory, dict[str, FakeProvider]]:
        """
        Returns:
            (catalog, factory, providers) where ``providers`` maps name to
            the FakeProvider registered for each available vendor
        """
        factory = ProviderFactory()
        providers: dict[str, FakeProvider] = {}
        if openai:
            providers["openai"] = cls.fake("openai", "gpt-4o-mini")
        if deepseek:
            providers["deepseek"] = cls.fake("deepseek", "deepseek-chat")
        for provider in providers.values():
            factory.register_instance(provider)
        return cls.catalog(openai, deepseek), factory, providers
