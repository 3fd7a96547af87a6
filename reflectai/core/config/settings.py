#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

This module provides type-safe, environment-based configuration for the AI
provider resilience layer. Values are loaded once at process start and treated
as immutable for the lifetime of the process.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- Grouped views (settings.redis, settings.circuit_breaker, ...) for callers
- Easy testing with reload_settings()
"""

from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RedisSettings(BaseSettings):
    """
    Shared backing store (Redis) configuration.

    When REDIS_ENABLED is false, or Redis cannot be reached, every component
    runs on its own in-memory fallback store.
    """

    REDIS_ENABLED: bool = Field(default=True, description="Use Redis as the shared store")
    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum pooled connections")
    REDIS_SOCKET_TIMEOUT: float = Field(default=2.0, description="Socket timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: float = Field(default=2.0, description="Connect timeout in seconds")
    REDIS_RECHECK_INTERVAL: float = Field(
        default=30.0, description="Seconds between availability probes while Redis is down"
    )

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LLMProviderSettings(BaseSettings):
    """
    LLM provider credentials and call defaults.

    A provider is available only when its API key is present.
    """

    OPENAI_API_KEY: str | None = Field(default=None, description="OpenAI API key")
    OPENAI_BASE_URL: str = Field(default="https://api.openai.com/v1", description="OpenAI base URL")

    DEEPSEEK_API_KEY: str | None = Field(default=None, description="DeepSeek API key")
    DEEPSEEK_BASE_URL: str = Field(default="https://api.deepseek.com/v1", description="DeepSeek base URL")

    PROVIDER_REQUEST_TIMEOUT: float = Field(default=30.0, description="Per-attempt timeout in seconds")
    LLM_DEFAULT_TEMPERATURE: float = Field(default=0.7, description="Default sampling temperature")
    LLM_DEFAULT_MAX_TOKENS: int = Field(default=1000, description="Default completion token budget")
    FAKE_PROVIDER_ENABLED: bool = Field(default=False, description="Register the fake provider")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class CircuitBreakerSettings(BaseSettings):
    """
    Circuit breaker thresholds.

    CB_MINIMUM_REQUEST_VOLUME gates the percentage rule; when unset it equals
    CB_FAILURE_THRESHOLD.
    """

    CB_FAILURE_THRESHOLD: int = Field(default=5, ge=1, description="Failures before opening circuit")
    CB_RESET_TIMEOUT: float = Field(default=30.0, gt=0, description="Seconds before a half-open trial")
    CB_HALF_OPEN_SUCCESS_THRESHOLD: int = Field(default=2, ge=1, description="Successes to close circuit")
    CB_ERROR_THRESHOLD_PERCENT: float = Field(
        default=50.0, gt=0, le=100, description="Failure percentage that opens the circuit"
    )
    CB_MINIMUM_REQUEST_VOLUME: int | None = Field(
        default=None, description="Requests required before the percentage rule applies"
    )

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class RetrySettings(BaseSettings):
    """Retry/backoff configuration for provider calls."""

    RETRY_MAX_ATTEMPTS: int = Field(default=3, ge=1, description="Attempts per provider call")
    RETRY_INITIAL_DELAY: float = Field(default=1.0, ge=0, description="First backoff delay (seconds)")
    RETRY_MAX_DELAY: float = Field(default=8.0, ge=0, description="Backoff ceiling (seconds)")
    RETRY_BACKOFF_FACTOR: float = Field(default=2.0, ge=1, description="Exponential growth factor")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class RateLimitSettings(BaseSettings):
    """
    Rate limit windows per route class plus abuse escalation.

    Windows are expressed in seconds.
    """

    RATE_LIMIT_ENABLED: bool = Field(default=True, description="Enable rate limiting")

    RATE_LIMIT_STANDARD_WINDOW: int = Field(default=3600, description="Standard window (1 hour)")
    RATE_LIMIT_STANDARD_MAX: int = Field(default=60, description="Standard requests per window")
    RATE_LIMIT_STRICT_WINDOW: int = Field(default=900, description="Strict window (15 minutes)")
    RATE_LIMIT_STRICT_MAX: int = Field(default=20, description="Strict requests per window")
    RATE_LIMIT_USER_WINDOW: int = Field(default=3600, description="User window (1 hour)")
    RATE_LIMIT_USER_MAX: int = Field(default=100, description="User requests per window")
    RATE_LIMIT_AI_WINDOW: int = Field(default=3600, description="AI window (1 hour)")
    RATE_LIMIT_AI_MAX: int = Field(default=50, description="AI requests per window")

    ABUSE_THRESHOLD: int = Field(default=10, description="Violations before blocking")
    ABUSE_WINDOW: int = Field(default=86400, description="Violation counting window (24 hours)")
    ABUSE_BLOCK_DURATION: int = Field(default=86400, description="Block duration (24 hours)")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class CacheSettings(BaseSettings):
    """
    Response cache configuration.

    AI responses live longer than general entries because persona/room pairs
    with identical input are expected to recur.
    """

    CACHE_ENABLED: bool = Field(default=True, description="Enable response caching")
    CACHE_DEFAULT_TTL: int = Field(default=3600, description="General cache TTL (1 hour)")
    CACHE_AI_RESPONSE_TTL: int = Field(default=86400, description="AI response cache TTL (24 hours)")
    FALLBACK_SWEEP_INTERVAL: float = Field(
        default=300.0, gt=0, description="Seconds between fallback store expiry sweeps"
    )

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LoggingSettings(BaseSettings):
    """Structured logging configuration."""

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ApplicationSettings(BaseSettings):
    """General application settings."""

    ENVIRONMENT: Literal["development", "test", "staging", "production"] = Field(
        default="development", description="Application environment"
    )
    DEBUG: bool = Field(default=False, description="Debug mode")
    APP_NAME: str = Field(default="ReflectAI Resilience Layer", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")
    API_HOST: str = Field(default="0.0.0.0", description="API server host")
    API_PORT: int = Field(default=8000, description="API server port")
    CORS_ORIGINS: list[str] = Field(default=["*"], description="Allowed CORS origins")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration sections.

    Usage:
        from reflectai.core.config.settings import get_settings

        settings = get_settings()
        threshold = settings.circuit_breaker.CB_FAILURE_THRESHOLD
        ai_ttl = settings.cache.CACHE_AI_RESPONSE_TTL
    """

    # Redis settings
    REDIS_ENABLED: bool = Field(default=True)
    REDIS_HOST: str = Field(default="localhost")
    REDIS_PORT: int = Field(default=6379)
    REDIS_DB: int = Field(default=0)
    REDIS_PASSWORD: str | None = Field(default=None)
    REDIS_MAX_CONNECTIONS: int = Field(default=50)
    REDIS_SOCKET_TIMEOUT: float = Field(default=2.0)
    REDIS_SOCKET_CONNECT_TIMEOUT: float = Field(default=2.0)
    REDIS_RECHECK_INTERVAL: float = Field(default=30.0)

    # LLM provider settings
    OPENAI_API_KEY: str | None = Field(default=None)
    OPENAI_BASE_URL: str = Field(default="https://api.openai.com/v1")
    DEEPSEEK_API_KEY: str | None = Field(default=None)
    DEEP_SEEK: str | None = Field(default=None, description="DeepSeek API key (alternative name)")
    DEEPSEEK_BASE_URL: str = Field(default="https://api.deepseek.com/v1")
    PROVIDER_REQUEST_TIMEOUT: float = Field(default=30.0)
    LLM_DEFAULT_TEMPERATURE: float = Field(default=0.7)
    LLM_DEFAULT_MAX_TOKENS: int = Field(default=1000)
    FAKE_PROVIDER_ENABLED: bool = Field(default=False)

    # Circuit breaker settings
    CB_FAILURE_THRESHOLD: int = Field(default=5)
    CB_RESET_TIMEOUT: float = Field(default=30.0)
    CB_HALF_OPEN_SUCCESS_THRESHOLD: int = Field(default=2)
    CB_ERROR_THRESHOLD_PERCENT: float = Field(default=50.0)
    CB_MINIMUM_REQUEST_VOLUME: int | None = Field(default=None)

    # Retry settings
    RETRY_MAX_ATTEMPTS: int = Field(default=3)
    RETRY_INITIAL_DELAY: float = Field(default=1.0)
    RETRY_MAX_DELAY: float = Field(default=8.0)
    RETRY_BACKOFF_FACTOR: float = Field(default=2.0)

    # Rate limiting settings
    RATE_LIMIT_ENABLED: bool = Field(default=True)
    RATE_LIMIT_STANDARD_WINDOW: int = Field(default=3600)
    RATE_LIMIT_STANDARD_MAX: int = Field(default=60)
    RATE_LIMIT_STRICT_WINDOW: int = Field(default=900)
    RATE_LIMIT_STRICT_MAX: int = Field(default=20)
    RATE_LIMIT_USER_WINDOW: int = Field(default=3600)
    RATE_LIMIT_USER_MAX: int = Field(default=100)
    RATE_LIMIT_AI_WINDOW: int = Field(default=3600)
    RATE_LIMIT_AI_MAX: int = Field(default=50)
    ABUSE_THRESHOLD: int = Field(default=10)
    ABUSE_WINDOW: int = Field(default=86400)
    ABUSE_BLOCK_DURATION: int = Field(default=86400)

    # Cache settings
    CACHE_ENABLED: bool = Field(default=True)
    CACHE_DEFAULT_TTL: int = Field(default=3600)
    CACHE_AI_RESPONSE_TTL: int = Field(default=86400)
    FALLBACK_SWEEP_INTERVAL: float = Field(default=300.0)

    # Logging settings
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json")

    # Application settings
    ENVIRONMENT: Literal["development", "test", "staging", "production"] = Field(default="development")
    DEBUG: bool = Field(default=False)
    APP_NAME: str = Field(default="ReflectAI Resilience Layer")
    APP_VERSION: str = Field(default="1.0.0")
    API_HOST: str = Field(default="0.0.0.0")
    API_PORT: int = Field(default=8000)
    CORS_ORIGINS: list[str] = Field(default=["*"])

    @model_validator(mode="after")
    def merge_deepseek_keys(self):
        """Merge DEEPSEEK_API_KEY and DEEP_SEEK for backward compatibility."""
        if self.DEEPSEEK_API_KEY is None and self.DEEP_SEEK:
            self.DEEPSEEK_API_KEY = self.DEEP_SEEK
        return self

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    # Grouped views
    @property
    def redis(self) -> RedisSettings:
        """Get Redis settings."""
        return RedisSettings(
            REDIS_ENABLED=self.REDIS_ENABLED,
            REDIS_HOST=self.REDIS_HOST,
            REDIS_PORT=self.REDIS_PORT,
            REDIS_DB=self.REDIS_DB,
            REDIS_PASSWORD=self.REDIS_PASSWORD,
            REDIS_MAX_CONNECTIONS=self.REDIS_MAX_CONNECTIONS,
            REDIS_SOCKET_TIMEOUT=self.REDIS_SOCKET_TIMEOUT,
            REDIS_SOCKET_CONNECT_TIMEOUT=self.REDIS_SOCKET_CONNECT_TIMEOUT,
            REDIS_RECHECK_INTERVAL=self.REDIS_RECHECK_INTERVAL,
        )

    @property
    def llm(self) -> LLMProviderSettings:
        """Get LLM provider settings."""
        return LLMProviderSettings(
            OPENAI_API_KEY=self.OPENAI_API_KEY,
            OPENAI_BASE_URL=self.OPENAI_BASE_URL,
            DEEPSEEK_API_KEY=self.DEEPSEEK_API_KEY,
            DEEPSEEK_BASE_URL=self.DEEPSEEK_BASE_URL,
            PROVIDER_REQUEST_TIMEOUT=self.PROVIDER_REQUEST_TIMEOUT,
            LLM_DEFAULT_TEMPERATURE=self.LLM_DEFAULT_TEMPERATURE,
            LLM_DEFAULT_MAX_TOKENS=self.LLM_DEFAULT_MAX_TOKENS,
            FAKE_PROVIDER_ENABLED=self.FAKE_PROVIDER_ENABLED,
        )

    @property
    def circuit_breaker(self) -> CircuitBreakerSettings:
        """Get circuit breaker settings."""
        return CircuitBreakerSettings(
            CB_FAILURE_THRESHOLD=self.CB_FAILURE_THRESHOLD,
            CB_RESET_TIMEOUT=self.CB_RESET_TIMEOUT,
            CB_HALF_OPEN_SUCCESS_THRESHOLD=self.CB_HALF_OPEN_SUCCESS_THRESHOLD,
            CB_ERROR_THRESHOLD_PERCENT=self.CB_ERROR_THRESHOLD_PERCENT,
            CB_MINIMUM_REQUEST_VOLUME=self.CB_MINIMUM_REQUEST_VOLUME,
        )

    @property
    def retry(self) -> RetrySettings:
        """Get retry settings."""
        return RetrySettings(
            RETRY_MAX_ATTEMPTS=self.RETRY_MAX_ATTEMPTS,
            RETRY_INITIAL_DELAY=self.RETRY_INITIAL_DELAY,
            RETRY_MAX_DELAY=self.RETRY_MAX_DELAY,
            RETRY_BACKOFF_FACTOR=self.RETRY_BACKOFF_FACTOR,
        )

    @property
    def rate_limit(self) -> RateLimitSettings:
        """Get rate limit settings."""
        return RateLimitSettings(
            RATE_LIMIT_ENABLED=self.RATE_LIMIT_ENABLED,
            RATE_LIMIT_STANDARD_WINDOW=self.RATE_LIMIT_STANDARD_WINDOW,
            RATE_LIMIT_STANDARD_MAX=self.RATE_LIMIT_STANDARD_MAX,
            RATE_LIMIT_STRICT_WINDOW=self.RATE_LIMIT_STRICT_WINDOW,
            RATE_LIMIT_STRICT_MAX=self.RATE_LIMIT_STRICT_MAX,
            RATE_LIMIT_USER_WINDOW=self.RATE_LIMIT_USER_WINDOW,
            RATE_LIMIT_USER_MAX=self.RATE_LIMIT_USER_MAX,
            RATE_LIMIT_AI_WINDOW=self.RATE_LIMIT_AI_WINDOW,
            RATE_LIMIT_AI_MAX=self.RATE_LIMIT_AI_MAX,
            ABUSE_THRESHOLD=self.ABUSE_THRESHOLD,
            ABUSE_WINDOW=self.ABUSE_WINDOW,
            ABUSE_BLOCK_DURATION=self.ABUSE_BLOCK_DURATION,
        )

    @property
    def cache(self) -> CacheSettings:
        """Get cache settings."""
        return CacheSettings(
            CACHE_ENABLED=self.CACHE_ENABLED,
            CACHE_DEFAULT_TTL=self.CACHE_DEFAULT_TTL,
            CACHE_AI_RESPONSE_TTL=self.CACHE_AI_RESPONSE_TTL,
            FALLBACK_SWEEP_INTERVAL=self.FALLBACK_SWEEP_INTERVAL,
        )

    @property
    def logging(self) -> LoggingSettings:
        """Get logging settings."""
        return LoggingSettings(LOG_LEVEL=self.LOG_LEVEL, LOG_FORMAT=self.LOG_FORMAT)

    @property
    def app(self) -> ApplicationSettings:
        """Get application settings."""
        return ApplicationSettings(
            ENVIRONMENT=self.ENVIRONMENT,
            DEBUG=self.DEBUG,
            APP_NAME=self.APP_NAME,
            APP_VERSION=self.APP_VERSION,
            API_HOST=self.API_HOST,
            API_PORT=self.API_PORT,
            CORS_ORIGINS=self.CORS_ORIGINS,
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton).

    Returns:
        Settings: Global settings instance
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reload_settings() -> Settings:
    """
    Reload settings (useful for testing).

    Returns:
        Settings: New settings instance
    """
    global _settings
    _settings = Settings()
    return _settings
