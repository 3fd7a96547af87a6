"""
LLM Provider Exceptions

All exceptions related to LLM provider calls, model selection and failover.

Retryable errors derive from RetryableProviderError; everything else raised
by a provider is surfaced to the caller without another attempt.
"""

from reflectai.core.exceptions.base import ReflectAIError


class ProviderError(ReflectAIError):
    """Base exception for LLM provider errors."""

    user_message = "The AI service failed to produce a response. Please try again later."
    http_status = 502

    @property
    def provider(self) -> str | None:
        return self.details.get("provider")

    @property
    def status_code(self) -> int | None:
        return self.details.get("status_code")


class RetryableProviderError(ProviderError):
    """
    Transient provider failure that is retried with backoff.

    Subclasses: timeout, rate limited, 5xx, connection reset.
    """
    pass


class ProviderTimeoutError(RetryableProviderError):
    """Raised when a single provider attempt exceeds its timeout."""
    pass


class ProviderRateLimitError(RetryableProviderError):
    """Raised when the provider answers 429 / too many requests."""
    pass


class ProviderServerError(RetryableProviderError):
    """Raised on a provider 5xx or an 'overloaded' response."""
    pass


class ProviderConnectionError(RetryableProviderError):
    """Raised when the connection to the provider fails or is reset."""
    pass


class ProviderAuthenticationError(ProviderError):
    """
    Raised when LLM provider authentication fails.

    Fatal: never retried and never failed over, but still counted by the
    provider's circuit breaker.

    Common causes:
    - Invalid or expired API key
    - Insufficient permissions
    """

    user_message = "The AI service is misconfigured. Please contact support."


class ProviderAPIError(ProviderError):
    """
    Raised when the provider rejects the request as malformed.

    Common causes:
    - Invalid request format
    - Unsupported model
    - Content policy violation
    """
    pass


class TokenLimitError(ProviderError):
    """
    Raised when the input does not fit the model's context window.

    Not retryable; the caller should pick a larger-context model instead of
    retrying the same one.
    """

    user_message = "Your input is too large for any available AI model. Please shorten it."
    http_status = 413


class NoSuitableModelError(TokenLimitError):
    """Raised by model selection when no available model can hold the input."""
    pass


class ProviderNotAvailableError(ProviderError):
    """Raised when a provider is unknown or has no credentials configured."""
    pass


class AllProvidersExhaustedError(ProviderError):
    """
    Raised when the primary call and the failover attempt both failed.

    This is the final error surfaced to the end user.
    """

    user_message = "All AI providers are currently unavailable. Please try again in a few minutes."
    http_status = 503
