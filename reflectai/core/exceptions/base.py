"""
Base Exception Class

Every resilience layer error derives from ReflectAIError. Besides the
internal message it carries two outward-facing attributes that each
subclass overrides:

    user_message   text that is safe to show to an end user
    http_status    status the HTTP surface answers with

Internal details (upstream error text, keys, provider names) stay in
``message`` and ``details`` and only reach logs.
"""

from typing import Any

# Keys that are kept for logs but never returned to a client.
_INTERNAL_DETAIL_KEYS = frozenset({"original_error", "original_message"})


class ReflectAIError(Exception):
    """
    Base exception for all resilience layer errors.

    Attributes:
        message: Internal error message (logged, never shown to users)
        request_id: Request ID for correlation (if available)
        details: Additional error details (dict)

    Example:
        raise ProviderTimeoutError(
            "OpenAI call exceeded 30s",
            details={"provider": "openai", "timeout": 30}
        )
    """

    user_message = "An unexpected error occurred. Please try again later."
    http_status = 500

    def __init__(
        self, message: str, request_id: str | None = None, details: dict[str, Any] | None = None
    ):
        self.message = message
        self.request_id = request_id
        self.details = (details or {}).copy()
        super().__init__(self.message)

    @property
    def retry_after(self) -> int | None:
        """Seconds a client should wait before retrying, when that is known."""
        return None

    def to_dict(self) -> dict[str, Any]:
        """Full structured form for logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "request_id": self.request_id,
            "details": self.details,
        }

    def to_response(self, request_id: str | None = None) -> dict[str, Any]:
        """Client-facing body: user message instead of the internal one."""
        return {
            "error": self.__class__.__name__,
            "message": self.user_message,
            "request_id": self.request_id or request_id,
            "details": {k: v for k, v in self.details.items() if k not in _INTERNAL_DETAIL_KEYS},
        }

    def __repr__(self) -> str:
        request_id_str = f", request_id='{self.request_id}'" if self.request_id else ""
        return f"{self.__class__.__name__}(message='{self.message}'{request_id_str})"

    @classmethod
    def from_exception(cls, exc: Exception, message: str | None = None, **details) -> "ReflectAIError":
        """
        Wrap a third-party exception, keeping its type and text as internal details.

        Example:
            except redis.ConnectionError as e:
                raise CacheConnectionError.from_exception(e, key=key)
        """
        return cls(
            message or str(exc),
            details={"original_error": type(exc).__name__, "original_message": str(exc), **details},
        )


class ConfigurationError(ReflectAIError):
    """Raised when configuration is invalid or missing."""
