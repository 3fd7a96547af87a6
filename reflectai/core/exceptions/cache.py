"""
Cache-Related Exceptions

All exceptions related to key/value backends (Redis, fallback store).

These are absorbed at the cache and rate limiter boundaries and never reach
the caller of the AI entry point.
"""

from reflectai.core.exceptions.base import ReflectAIError


class CacheError(ReflectAIError):
    """Base exception for cache-related errors."""
    pass


class CacheBackendError(CacheError):
    """Raised when the backing store fails an operation."""
    pass


class CacheConnectionError(CacheBackendError):
    """
    Raised when unable to connect to the shared store (Redis).

    Common causes:
    - Redis server is down
    - Network connectivity issues
    - Incorrect host/port configuration
    """
    pass


class CacheKeyError(CacheBackendError):
    """Raised when a single key operation fails."""
    pass
