"""
Circuit Breaker for LLM Providers.

This module implements a per-service circuit breaker that wraps arbitrary
async calls with failure accounting and fast-fail behavior.

MECHANISM OF ACTION:
-------------------
1.  **State Transitions**:
    - **CLOSED**: The service is healthy. Requests are allowed.
      - On Success: failure counter resets to 0 (isolated failures are forgiven).
      - On Failure: the error is categorized and counted. If failures reach
        ``failure_threshold``, or the failure percentage of the current window
        reaches ``error_threshold_percent`` (once ``minimum_request_volume``
        requests have been seen), the circuit OPENS.

    - **OPEN**: The service is down. Calls are rejected with ``CircuitOpenError``
      without invoking the wrapped function.
      - Recovery: once ``reset_timeout`` seconds have passed since the OPEN
        transition, the next call moves the breaker to HALF-OPEN and proceeds.

    - **HALF-OPEN**: Probing mode.
      - On Success: success counter increments; at
        ``half_open_success_threshold`` the circuit CLOSES and counters reset.
      - On Failure: the circuit OPENS again and the timeout restarts.

2.  **Lazy Re-evaluation**:
    OPEN -> HALF-OPEN is computed at call time by comparing the clock against
    the last state change. There is no background timer, so a breaker driven by
    an injected clock is fully deterministic.

3.  **Accounting Is Linearizable**:
    Every state read/mutation happens inside a short critical section guarded
    by a lock. The lock is never held while the wrapped call is awaited.

The breaker always re-raises the functional error after accounting.
"""

import asyncio
import threading
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from reflectai.core.config.constants import CircuitState, ErrorCategory, Stage
from reflectai.core.exceptions import (
    CircuitOpenError,
    ProviderAuthenticationError,
    ProviderConnectionError,
    ProviderRateLimitError,
    ProviderServerError,
    ProviderTimeoutError,
    TokenLimitError,
)
from reflectai.core.logging.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]


def _status_of(error: BaseException) -> int | None:
    status = getattr(error, "status_code", None)
    if status is None:
        status = getattr(error, "status", None)
    return status if isinstance(status, int) else None


def categorize_error(error: BaseException | None) -> ErrorCategory:
    """
    Categorize a failure using exception type, status code and message heuristics.

    Typed provider errors are mapped directly; anything else falls back to the
    HTTP status and then to keywords in the message.
    """
    if error is None:
        return ErrorCategory.UNKNOWN

    if isinstance(error, (ProviderTimeoutError, asyncio.TimeoutError, TimeoutError)):
        return ErrorCategory.TIMEOUT
    if isinstance(error, ProviderRateLimitError):
        return ErrorCategory.RATE_LIMIT
    if isinstance(error, TokenLimitError):
        return ErrorCategory.TOKEN_LIMIT
    if isinstance(error, ProviderAuthenticationError):
        return ErrorCategory.AUTHENTICATION
    if isinstance(error, ProviderServerError):
        return ErrorCategory.SERVER_ERROR
    if isinstance(error, (ProviderConnectionError, ConnectionError)):
        return ErrorCategory.NETWORK_ERROR

    message = str(error).lower()
    status = _status_of(error)

    if "timeout" in message or "timed out" in message:
        return ErrorCategory.TIMEOUT
    if status == 429 or "rate limit" in message or "too many requests" in message:
        return ErrorCategory.RATE_LIMIT
    if status == 413 or ("token" in message and ("limit" in message or "exceed" in message)):
        return ErrorCategory.TOKEN_LIMIT
    if status in (401, 403) or any(word in message for word in ("authentication", "unauthorized", "api key")):
        return ErrorCategory.AUTHENTICATION
    if (status is not None and status >= 500) or "server error" in message or "internal error" in message:
        return ErrorCategory.SERVER_ERROR
    if any(word in message for word in ("network", "connection", "econnreset", "econnrefused")):
        return ErrorCategory.NETWORK_ERROR

    return ErrorCategory.UNKNOWN


class CircuitBreaker:
    """
    In-process circuit breaker for one protected service.

    Usage:
        breaker = CircuitBreaker("openai", failure_threshold=5, reset_timeout=30)
        result = await breaker.execute(lambda: provider.complete(request))
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        reset_timeout: float = 30.0,
        half_open_success_threshold: int = 2,
        error_threshold_percent: float = 50.0,
        minimum_request_volume: int | None = None,
        clock: Clock | None = None,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.half_open_success_threshold = half_open_success_threshold
        self.error_threshold_percent = error_threshold_percent
        self.minimum_request_volume = (
            minimum_request_volume if minimum_request_volume is not None else failure_threshold
        )
        self._clock = clock or time.monotonic
        self._lock = threading.Lock()

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._request_count = 0
        self._last_state_change = self._clock()
        self._last_error: dict[str, Any] | None = None
        self._error_counts: dict[ErrorCategory, int] = {category: 0 for category in ErrorCategory}

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(self, fn: Callable[[], Awaitable[T]]) -> T:
        """
        Invoke ``fn`` through the breaker.

        Raises:
            CircuitOpenError: If the circuit is OPEN and the reset timeout has not elapsed
            Exception: Whatever ``fn`` raised, after failure accounting
        """
        self._before_call()

        try:
            result = await fn()
        except Exception as e:
            self._on_failure(e)
            raise

        self._on_success()
        return result

    def _before_call(self) -> None:
        with self._lock:
            if self._state == CircuitState.OPEN:
                if self._clock() - self._last_state_change < self.reset_timeout:
                    raise CircuitOpenError(
                        self.name,
                        last_error=self._last_error,
                        error_counts=self._error_counts_snapshot(),
                    )
                self._to_half_open()
            self._request_count += 1

    def _on_success(self) -> None:
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._success_count += 1
                if self._success_count >= self.half_open_success_threshold:
                    self._to_closed()
            elif self._state == CircuitState.CLOSED:
                self._failure_count = 0

    def _on_failure(self, error: BaseException) -> None:
        category = categorize_error(error)
        with self._lock:
            self._error_counts[category] += 1
            self._failure_count += 1
            self._last_error = {
                "category": category.value,
                "message": str(error),
                "error_type": type(error).__name__,
                "timestamp": time.time(),
            }

            if self._state == CircuitState.HALF_OPEN:
                self._to_open()
            elif self._state == CircuitState.CLOSED and self._should_open():
                self._to_open()
            failure_count = self._failure_count
            state = self._state

        logger.warning(
            "Circuit breaker recorded failure",
            stage=Stage.CIRCUIT_BREAKER,
            breaker=self.name,
            category=category.value,
            failure_count=failure_count,
            state=state.value,
        )

    def _should_open(self) -> bool:
        if self._failure_count >= self.failure_threshold:
            return True
        if self._request_count < self.minimum_request_volume:
            return False
        failure_percent = (self._failure_count / self._request_count) * 100
        return failure_percent >= self.error_threshold_percent

    # ------------------------------------------------------------------
    # Transitions (caller holds the lock)
    # ------------------------------------------------------------------

    def _to_open(self) -> None:
        self._state = CircuitState.OPEN
        self._success_count = 0
        self._last_state_change = self._clock()
        logger.warning(
            "Circuit breaker opened",
            stage=Stage.CIRCUIT_BREAKER,
            breaker=self.name,
            failure_count=self._failure_count,
            request_count=self._request_count,
        )

    def _to_half_open(self) -> None:
        self._state = CircuitState.HALF_OPEN
        self._success_count = 0
        self._last_state_change = self._clock()
        logger.info("Circuit breaker half-open", stage=Stage.CIRCUIT_BREAKER, breaker=self.name)

    def _to_closed(self) -> None:
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._request_count = 0
        self._last_state_change = self._clock()
        logger.info("Circuit breaker closed", stage=Stage.CIRCUIT_BREAKER, breaker=self.name)

    # ------------------------------------------------------------------
    # Manual operations
    # ------------------------------------------------------------------

    def trip(self) -> None:
        """Force the circuit OPEN."""
        with self._lock:
            self._to_open()

    def reset(self) -> None:
        """Force the circuit CLOSED and clear all counters."""
        with self._lock:
            self._to_closed()
            self._last_error = None
            self._error_counts = {category: 0 for category in ErrorCategory}

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    def _error_counts_snapshot(self) -> dict[str, int]:
        return {category.value: count for category, count in self._error_counts.items()}

    def get_state(self) -> CircuitState:
        """Current state (without evaluating the reset timeout)."""
        with self._lock:
            return self._state

    def is_open(self) -> bool:
        """True while OPEN and the reset timeout has not yet elapsed."""
        with self._lock:
            return (
                self._state == CircuitState.OPEN
                and self._clock() - self._last_state_change < self.reset_timeout
            )

    def get_status(self) -> dict[str, Any]:
        """Read-only snapshot for dashboards."""
        with self._lock:
            now = self._clock()
            return {
                "name": self.name,
                "state": self._state.value,
                "failure_count": self._failure_count,
                "success_count": self._success_count,
                "request_count": self._request_count,
                "seconds_since_state_change": round(now - self._last_state_change, 3),
                "open_duration": (
                    round(now - self._last_state_change, 3)
                    if self._state == CircuitState.OPEN
                    else 0
                ),
                "last_error": dict(self._last_error) if self._last_error else None,
                "error_counts": self._error_counts_snapshot(),
                "config": {
                    "failure_threshold": self.failure_threshold,
                    "reset_timeout": self.reset_timeout,
                    "half_open_success_threshold": self.half_open_success_threshold,
                    "error_threshold_percent": self.error_threshold_percent,
                    "minimum_request_volume": self.minimum_request_volume,
                },
            }


class BreakerRegistry:
    """
    Owns every circuit breaker in the process, one per service name.

    Built once at startup and passed to the components that need it.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        reset_timeout: float = 30.0,
        half_open_success_threshold: int = 2,
        error_threshold_percent: float = 50.0,
        minimum_request_volume: int | None = None,
        clock: Clock | None = None,
    ):
        self._defaults = {
            "failure_threshold": failure_threshold,
            "reset_timeout": reset_timeout,
            "half_open_success_threshold": half_open_success_threshold,
            "error_threshold_percent": error_threshold_percent,
            "minimum_request_volume": minimum_request_volume,
        }
        self._clock = clock
        self._breakers: dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings, clock: Clock | None = None) -> "BreakerRegistry":
        cb = settings.circuit_breaker
        return cls(
            failure_threshold=cb.CB_FAILURE_THRESHOLD,
            reset_timeout=cb.CB_RESET_TIMEOUT,
            half_open_success_threshold=cb.CB_HALF_OPEN_SUCCESS_THRESHOLD,
            error_threshold_percent=cb.CB_ERROR_THRESHOLD_PERCENT,
            minimum_request_volume=cb.CB_MINIMUM_REQUEST_VOLUME,
            clock=clock,
        )

    def get_or_create(self, name: str, **overrides) -> CircuitBreaker:
        """Return the breaker for ``name``, creating it with the registry defaults."""
        with self._lock:
            breaker = self._breakers.get(name)
            if breaker is None:
                options = {**self._defaults, **overrides}
                breaker = CircuitBreaker(name, clock=self._clock, **options)
                self._breakers[name] = breaker
                logger.info("Circuit breaker created", stage=Stage.CIRCUIT_BREAKER, breaker=name)
            return breaker

    def get(self, name: str) -> CircuitBreaker | None:
        with self._lock:
            return self._breakers.get(name)

    def names(self) -> list[str]:
        with self._lock:
            return list(self._breakers)

    def is_open(self, name: str) -> bool:
        breaker = self.get(name)
        return breaker.is_open() if breaker else False

    def get_all_states(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            breakers = list(self._breakers.values())
        return {breaker.name: breaker.get_status() for breaker in breakers}

    def reset_breaker(self, name: str) -> bool:
        """Reset one breaker. Returns False when no breaker has that name."""
        breaker = self.get(name)
        if breaker is None:
            return False
        breaker.reset()
        logger.info("Circuit breaker reset", stage=Stage.ADMIN, breaker=name)
        return True

    def reset_all_breakers(self) -> int:
        """Reset every breaker and return how many were reset."""
        with self._lock:
            breakers = list(self._breakers.values())
        for breaker in breakers:
            breaker.reset()
        logger.info("All circuit breakers reset", stage=Stage.ADMIN, count=len(breakers))
        return len(breakers)
