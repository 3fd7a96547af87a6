"""
Configuration Module

Centralized, type-safe configuration for the AI provider resilience layer.

Components:
-----------
- **settings.py**: Pydantic-based configuration with environment variable loading
- **constants.py**: System-wide constants, enums, and key prefixes
- **provider_catalog.py**: Immutable provider/model catalog built from settings

Usage:
------
```python
from reflectai.core.config import get_settings
from reflectai.core.config.constants import Stage, CircuitState

settings = get_settings()
threshold = settings.circuit_breaker.CB_FAILURE_THRESHOLD
stage = Stage.CACHE_LOOKUP  # "2.0_CACHE_LOOKUP"
```

Environment Variables:
---------------------
```bash
# Redis
REDIS_HOST=localhost
REDIS_ENABLED=true

# LLM Providers
OPENAI_API_KEY=sk-...
DEEPSEEK_API_KEY=sk-...

# Circuit Breaker
CB_FAILURE_THRESHOLD=5
CB_RESET_TIMEOUT=30

# Cache
CACHE_DEFAULT_TTL=3600
CACHE_AI_RESPONSE_TTL=86400
```

Testing:
-------
```python
import os
from reflectai.core.config import reload_settings

os.environ["CB_FAILURE_THRESHOLD"] = "3"
settings = reload_settings()
assert settings.circuit_breaker.CB_FAILURE_THRESHOLD == 3
```
"""

from reflectai.core.config.constants import (
    CACHE_PREFIX_AI,
    CACHE_PREFIX_PROMPT,
    HEADER_RATE_LIMIT,
    HEADER_RATE_REMAINING,
    HEADER_RATE_RESET,
    HEADER_REQUEST_ID,
    HEADER_USER_ID,
    RATE_LIMIT_EXEMPT_PATHS,
    REDIS_KEY_ABUSE,
    REDIS_KEY_CACHE,
    REDIS_KEY_RATE_LIMIT,
    CircuitState,
    Complexity,
    ErrorCategory,
    LLMProvider,
    RouteClass,
    Stage,
)
from reflectai.core.config.settings import Settings, get_settings, reload_settings

# NOTE: provider_catalog is not imported here to avoid circular imports
# Import it directly when needed: from reflectai.core.config.provider_catalog import build_catalog

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "reload_settings",
    # Enums
    "Stage",
    "CircuitState",
    "ErrorCategory",
    "Complexity",
    "LLMProvider",
    "RouteClass",
    # Rate limiting
    "RATE_LIMIT_EXEMPT_PATHS",
    # Redis keys
    "REDIS_KEY_CACHE",
    "REDIS_KEY_RATE_LIMIT",
    "REDIS_KEY_ABUSE",
    "CACHE_PREFIX_AI",
    "CACHE_PREFIX_PROMPT",
    # HTTP headers
    "HEADER_REQUEST_ID",
    "HEADER_USER_ID",
    "HEADER_RATE_LIMIT",
    "HEADER_RATE_REMAINING",
    "HEADER_RATE_RESET",
]
