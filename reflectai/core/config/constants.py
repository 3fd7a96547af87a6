"""
System Constants and Enumerations

This module defines system-wide constants and enumerations used across
the AI provider resilience layer.

Architectural Decision: Centralized constants for maintainability
- Single source of truth for magic numbers
- Type-safe enums for state management
- Easy to update and track changes
"""

from enum import Enum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Request processing stages attached to log entries as ``stage=...``.

    Format: {SEQUENCE}_{DESCRIPTIVE_NAME}
    - SEQUENCE: Numeric order (1.0, 2.0) or alphabetic prefix (CB, R)
    - DESCRIPTIVE_NAME: Uppercase description with underscores

    Examples:
        logger.info("Cache hit", stage=Stage.CACHE_LOOKUP)
        logger.warning("Circuit opened", stage=Stage.CIRCUIT_BREAKER)
    """

    # Main request lifecycle for one AI request
    INITIALIZATION = "0.0_INITIALIZATION"
    RATE_LIMITING = "1.0_RATE_LIMITING"
    CACHE_LOOKUP = "2.0_CACHE_LOOKUP"
    PROVIDER_SELECTION = "3.0_PROVIDER_SELECTION"
    LLM_CALL = "4.0_LLM_CALL"
    FAILOVER = "5.0_FAILOVER"
    CACHE_STORE = "6.0_CACHE_STORE"

    # Cross-cutting concerns
    CIRCUIT_BREAKER = "CB_CIRCUIT_BREAKER"
    RETRY = "R_RETRY_LOGIC"
    FALLBACK_STORE = "FS_FALLBACK_STORE"
    SHARED_STORE = "SS_SHARED_STORE"
    ADMIN = "A_ADMIN"


# ============================================================================
# Circuit Breaker
# ============================================================================


class CircuitState(str, Enum):
    """
    Circuit breaker states.

    CLOSED: Normal operation, requests allowed
    OPEN: Failing fast, requests blocked
    HALF_OPEN: Testing recovery, trial requests allowed
    """

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class ErrorCategory(str, Enum):
    """Failure categories tracked per breaker."""

    TIMEOUT = "TIMEOUT"
    RATE_LIMIT = "RATE_LIMIT"
    TOKEN_LIMIT = "TOKEN_LIMIT"
    AUTHENTICATION = "AUTHENTICATION"
    SERVER_ERROR = "SERVER_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    UNKNOWN = "UNKNOWN"


# ============================================================================
# Provider Selection
# ============================================================================


class Complexity(str, Enum):
    """Input complexity tiers used for model selection."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class LLMProvider(str, Enum):
    """
    Provider names known to the default catalog.
    """

    OPENAI = "openai"
    DEEPSEEK = "deepseek"
    FAKE = "fake"


CAPABILITY_HIGH_REASONING = "high-reasoning"
CAPABILITY_COMPLEX_INSTRUCTIONS = "complex-instructions"
CAPABILITY_NUANCED_RESPONSE = "nuanced-response"
CAPABILITY_LARGE_CONTEXT = "large-context"
CAPABILITY_BASIC_REASONING = "basic-reasoning"
CAPABILITY_STANDARD_INSTRUCTIONS = "standard-instructions"

# Rough approximation: 1 token ~ 4 characters of English text
CHARS_PER_TOKEN = 4

# Complexity scoring: (factor, medium threshold, high threshold)
COMPLEXITY_LENGTH_THRESHOLDS = (200, 500)
COMPLEXITY_SENTENCE_THRESHOLDS = (5, 10)
COMPLEXITY_AVG_WORD_LENGTH_THRESHOLDS = (5, 6)
COMPLEXITY_QUESTION_THRESHOLDS = (1, 3)
COMPLEXITY_LONG_WORD_THRESHOLDS = (2, 5)
COMPLEXITY_LONG_WORD_MIN_LENGTH = 10
COMPLEXITY_HIGH_SCORE = 6
COMPLEXITY_MEDIUM_SCORE = 3

# ============================================================================
# Rate Limiting
# ============================================================================


class RouteClass(str, Enum):
    """
    Route classes with their own rate limit windows.

    STANDARD: General API traffic, keyed by IP
    STRICT: Authentication endpoints, keyed by IP
    USER: Per-user traffic (falls back to IP)
    AI: AI generation endpoints (falls back to IP)
    """

    STANDARD = "standard"
    STRICT = "strict"
    USER = "user"
    AI = "ai"


RATE_LIMIT_EXEMPT_PATHS = ("/health", "/metrics")

# ============================================================================
# Redis Key Prefixes
# ============================================================================

REDIS_KEY_CACHE = "cache"
REDIS_KEY_RATE_LIMIT = "ratelimit"
REDIS_KEY_ABUSE = "abuse"

CACHE_PREFIX_AI = "ai"
CACHE_PREFIX_PROMPT = "prompt"

# ============================================================================
# HTTP Headers
# ============================================================================

HEADER_REQUEST_ID = "X-Request-ID"
HEADER_USER_ID = "X-User-ID"
HEADER_RATE_LIMIT = "X-RateLimit-Limit"
HEADER_RATE_REMAINING = "X-RateLimit-Remaining"
HEADER_RATE_RESET = "X-RateLimit-Reset"
