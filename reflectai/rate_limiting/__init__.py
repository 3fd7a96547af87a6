"""
Rate Limiting Module

Distributed per-identity rate limiting backed by Redis, with the in-memory
fallback store during outages.
"""

from .rate_limiter import (
    RateLimiter,
    RateLimitResult,
    RateLimitRule,
    derive_identity,
    get_request_identity,
)

__all__ = [
    "RateLimiter",
    "RateLimitResult",
    "RateLimitRule",
    "derive_identity",
    "get_request_identity",
]
