"""
Cache Module

Response cache over Redis with an in-memory fallback store.
"""

from .cache_manager import CacheObserver, ResponseCache, generate_cache_key
from .fallback_store import FallbackStore
from .kv_store import KeyValueStore
from .redis_client import RedisClient

__all__ = [
    "CacheObserver",
    "FallbackStore",
    "KeyValueStore",
    "RedisClient",
    "ResponseCache",
    "generate_cache_key",
]
