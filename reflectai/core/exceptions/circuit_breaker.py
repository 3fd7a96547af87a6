"""
Circuit Breaker Exceptions

All exceptions related to circuit breaker operations
"""

from typing import Any

from reflectai.core.exceptions.base import ReflectAIError


class CircuitBreakerError(ReflectAIError):
    """Base exception for circuit breaker errors."""
    pass


class CircuitOpenError(CircuitBreakerError):
    """
    Raised when a circuit breaker is open (fail fast).

    The wrapped function was not invoked. Callers should attempt failover to
    another provider.

    Attributes:
        name: Breaker name (one per protected service)
        last_error: Last categorized failure recorded by the breaker
        error_counts: Failure counts by error category
    """

    user_message = "The AI service is temporarily unavailable. Please try again shortly."
    http_status = 503

    def __init__(
        self,
        name: str,
        last_error: dict[str, Any] | None = None,
        error_counts: dict[str, int] | None = None,
        request_id: str | None = None,
    ):
        self.name = name
        self.last_error = last_error
        self.error_counts = dict(error_counts or {})
        super().__init__(
            f"Circuit breaker '{name}' is OPEN",
            request_id=request_id,
            details={
                "breaker": name,
                "last_error": last_error,
                "error_counts": self.error_counts,
            },
        )
