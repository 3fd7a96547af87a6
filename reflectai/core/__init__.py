"""
Core Module

Foundational components: configuration, logging, exceptions and resilience.
"""

from .exceptions import (
    AllProvidersExhaustedError,
    CacheBackendError,
    CircuitOpenError,
    ConfigurationError,
    NoSuitableModelError,
    ProviderError,
    RateLimitExceededError,
    ReflectAIError,
    TokenLimitError,
)
from .logging import (
    clear_request_id,
    get_logger,
    get_request_id,
    log_stage,
    set_request_id,
    setup_logging,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "set_request_id",
    "get_request_id",
    "clear_request_id",
    "log_stage",
    "ReflectAIError",
    "ConfigurationError",
    "CacheBackendError",
    "CircuitOpenError",
    "ProviderError",
    "TokenLimitError",
    "NoSuitableModelError",
    "AllProvidersExhaustedError",
    "RateLimitExceededError",
]
