"""
Unit Tests for Configuration Settings

Tests the settings loading, validation, grouped views and default values.
"""

import pytest
from pydantic import ValidationError

from reflectai.core.config.provider_catalog import build_catalog, register_providers
from reflectai.core.config.settings import Settings
from reflectai.llm_providers.base_provider import ProviderFactory


def make_settings(**overrides):
    return Settings(_env_file=None, **overrides)


@pytest.mark.unit
class TestSettingsDefaults:
    """Defaults must match the documented resilience parameters."""

    def test_circuit_breaker_defaults(self):
        cb = make_settings().circuit_breaker
        assert cb.CB_FAILURE_THRESHOLD == 5
        assert cb.CB_RESET_TIMEOUT == 30
        assert cb.CB_HALF_OPEN_SUCCESS_THRESHOLD == 2
        assert cb.CB_ERROR_THRESHOLD_PERCENT == 50

    def test_retry_defaults(self):
        retry = make_settings().retry
        assert retry.RETRY_MAX_ATTEMPTS == 3
        assert retry.RETRY_INITIAL_DELAY == 1.0
        assert retry.RETRY_MAX_DELAY == 8.0
        assert retry.RETRY_BACKOFF_FACTOR == 2.0

    def test_rate_limit_defaults(self):
        rl = make_settings().rate_limit
        assert (rl.RATE_LIMIT_STANDARD_WINDOW, rl.RATE_LIMIT_STANDARD_MAX) == (3600, 60)
        assert (rl.RATE_LIMIT_STRICT_WINDOW, rl.RATE_LIMIT_STRICT_MAX) == (900, 20)
        assert (rl.RATE_LIMIT_USER_WINDOW, rl.RATE_LIMIT_USER_MAX) == (3600, 100)
        assert (rl.RATE_LIMIT_AI_WINDOW, rl.RATE_LIMIT_AI_MAX) == (3600, 50)
        assert rl.ABUSE_THRESHOLD == 10
        assert rl.ABUSE_BLOCK_DURATION == 86400

    def test_cache_defaults(self):
        cache = make_settings().cache
        assert cache.CACHE_DEFAULT_TTL == 3600
        assert cache.CACHE_AI_RESPONSE_TTL == 86400
        assert cache.FALLBACK_SWEEP_INTERVAL == 300


@pytest.mark.unit
class TestSettingsValidation:
    def test_invalid_log_level_rejected(self):
        with pytest.raises(ValidationError):
            make_settings(LOG_LEVEL="LOUD")

    def test_log_level_is_normalized(self):
        assert make_settings(LOG_LEVEL="debug").logging.LOG_LEVEL == "DEBUG"

    def test_invalid_environment_rejected(self):
        with pytest.raises(ValidationError):
            make_settings(ENVIRONMENT="qa")

    def test_deep_seek_alias_fills_deepseek_key(self):
        settings = make_settings(DEEPSEEK_API_KEY=None, DEEP_SEEK="ds-legacy")
        assert settings.llm.DEEPSEEK_API_KEY == "ds-legacy"

    def test_explicit_deepseek_key_wins(self):
        settings = make_settings(DEEPSEEK_API_KEY="ds-new", DEEP_SEEK="ds-legacy")
        assert settings.llm.DEEPSEEK_API_KEY == "ds-new"

    def test_environment_variables_are_read(self, monkeypatch):
        monkeypatch.setenv("CB_FAILURE_THRESHOLD", "9")
        monkeypatch.setenv("REDIS_HOST", "redis.internal")
        settings = make_settings()
        assert settings.circuit_breaker.CB_FAILURE_THRESHOLD == 9
        assert settings.redis.REDIS_HOST == "redis.internal"


@pytest.mark.unit
class TestProviderCatalog:
    def test_availability_follows_credentials(self):
        catalog = build_catalog(make_settings(OPENAI_API_KEY="sk-test", DEEPSEEK_API_KEY=None, DEEP_SEEK=None))
        assert catalog["openai"].available is True
        assert catalog["deepseek"].available is False
        assert "fake" not in catalog

    def test_fake_provider_is_opt_in(self):
        catalog = build_catalog(make_settings(FAKE_PROVIDER_ENABLED=True))
        assert catalog["fake"].available is True
        assert catalog["fake"].default_model == "fake-model"

    def test_default_models_belong_to_provider(self):
        catalog = build_catalog(make_settings(FAKE_PROVIDER_ENABLED=True))
        for provider in catalog.values():
            assert provider.get_model(provider.default_model) is not None

    def test_register_providers_only_with_credentials(self):
        factory = ProviderFactory()
        register_providers(
            factory,
            make_settings(OPENAI_API_KEY=None, DEEPSEEK_API_KEY="ds-key", FAKE_PROVIDER_ENABLED=False),
        )
        assert factory.get_available() == ["deepseek"]
