"""
Resilience Module - Core Resilience Components

COMPONENTS:
===========
- CircuitBreaker: Per-service failure accounting and fast-fail
- BreakerRegistry: Owns every breaker in the process
- with_retry / RetryPolicy: Exponential backoff for transient failures
"""

from .circuit_breaker import BreakerRegistry, CircuitBreaker, categorize_error
from .retry import RetryPolicy, is_retryable_error, with_retry

__all__ = [
    "BreakerRegistry",
    "CircuitBreaker",
    "categorize_error",
    "RetryPolicy",
    "is_retryable_error",
    "with_retry",
]
