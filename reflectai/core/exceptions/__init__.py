"""
Exception Module

Structured exception hierarchy for the AI provider resilience layer.

Module Structure:
-----------------
- **base.py**: ReflectAIError base class + ConfigurationError
- **provider.py**: LLM provider, selection and failover exceptions
- **circuit_breaker.py**: Circuit breaker exceptions
- **cache.py**: Key/value backend exceptions (Redis, fallback store)
- **rate_limit.py**: Rate limiting exceptions

Propagation:
------------
Only functional provider errors and the final exhausted-failover error reach
the caller. Cache and rate limiter backend errors are absorbed at their
component boundary and logged.

Usage:
------
```python
from reflectai.core.exceptions import CircuitOpenError, NoSuitableModelError
```
"""

from reflectai.core.exceptions.base import ConfigurationError, ReflectAIError
from reflectai.core.exceptions.cache import (
    CacheBackendError,
    CacheConnectionError,
    CacheError,
    CacheKeyError,
)
from reflectai.core.exceptions.circuit_breaker import CircuitBreakerError, CircuitOpenError
from reflectai.core.exceptions.provider import (
    AllProvidersExhaustedError,
    NoSuitableModelError,
    ProviderAPIError,
    ProviderAuthenticationError,
    ProviderConnectionError,
    ProviderError,
    ProviderNotAvailableError,
    ProviderRateLimitError,
    ProviderServerError,
    ProviderTimeoutError,
    RetryableProviderError,
    TokenLimitError,
)
from reflectai.core.exceptions.rate_limit import (
    IdentityBlockedError,
    RateLimiterBackendError,
    RateLimitError,
    RateLimitExceededError,
)

__all__ = [
    # Base
    "ReflectAIError",
    "ConfigurationError",
    # Cache
    "CacheError",
    "CacheBackendError",
    "CacheConnectionError",
    "CacheKeyError",
    # Circuit breaker
    "CircuitBreakerError",
    "CircuitOpenError",
    # Provider
    "ProviderError",
    "RetryableProviderError",
    "ProviderTimeoutError",
    "ProviderRateLimitError",
    "ProviderServerError",
    "ProviderConnectionError",
    "ProviderAuthenticationError",
    "ProviderAPIError",
    "TokenLimitError",
    "NoSuitableModelError",
    "ProviderNotAvailableError",
    "AllProvidersExhaustedError",
    # Rate limit
    "RateLimitError",
    "RateLimitExceededError",
    "IdentityBlockedError",
    "RateLimiterBackendError",
]
