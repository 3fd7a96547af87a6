"""
Rate Limiting Exceptions

All exceptions related to rate limiting operations
"""

from reflectai.core.exceptions.base import ReflectAIError

DEFAULT_RETRY_AFTER = 60


class RateLimitError(ReflectAIError):
    """Base exception for rate limiting errors."""

    user_message = "Too many requests. Please slow down and try again later."

    @property
    def reset_after(self) -> int | None:
        return self.details.get("reset_after")


class RateLimitExceededError(RateLimitError):
    """
    Raised when an identity exceeds its window limit.

    The response should include:
    - X-RateLimit-Limit: Maximum requests allowed
    - X-RateLimit-Remaining: Requests remaining
    - X-RateLimit-Reset: Seconds until the window resets
    """

    http_status = 429

    @property
    def limit(self) -> int | None:
        return self.details.get("limit")

    @property
    def retry_after(self) -> int:
        return self.reset_after or DEFAULT_RETRY_AFTER


class IdentityBlockedError(RateLimitError):
    """Raised when an identity is blocked after repeated rate limit violations."""

    user_message = "Access temporarily blocked due to repeated rate limit violations."
    http_status = 403

    @property
    def retry_after(self) -> int:
        return self.reset_after or DEFAULT_RETRY_AFTER


class RateLimiterBackendError(RateLimitError):
    """Raised internally when the counter store fails; always absorbed."""
    pass
