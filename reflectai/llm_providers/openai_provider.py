#!/usr/bin/env python3
"""
OpenAI-Compatible LLM Provider

Implements the provider interface with the official AsyncOpenAI client. The
same adapter serves OpenAI and DeepSeek (DeepSeek exposes an OpenAI-compatible
API under its own base URL).

SDK exceptions are translated into the internal hierarchy so that retry and
circuit-breaker classification never depends on vendor types.
"""

from openai import (
    APIConnectionError,
    APIError,
    APIStatusError,
    APITimeoutError,
    AsyncOpenAI,
    AuthenticationError,
    BadRequestError,
    PermissionDeniedError,
    RateLimitError,
)

from reflectai.core.config.constants import Stage
from reflectai.core.exceptions import (
    ProviderAPIError,
    ProviderAuthenticationError,
    ProviderConnectionError,
    ProviderError,
    ProviderRateLimitError,
    ProviderServerError,
    ProviderTimeoutError,
    TokenLimitError,
)
from reflectai.core.logging import get_logger
from reflectai.llm_providers.base_provider import (
    BaseProvider,
    CompletionRequest,
    CompletionResult,
    ProviderConfig,
)

logger = get_logger(__name__)

OPENAI_DEFAULT_BASE_URL = "https://api.openai.com/v1"


def _is_context_length_error(error: APIError) -> bool:
    code = (getattr(error, "code", None) or "").lower()
    message = str(error).lower()
    return code == "context_length_exceeded" or "maximum context length" in message


class OpenAICompatibleProvider(BaseProvider):
    """
    Provider adapter over the OpenAI chat completions API.

    Retries are disabled in the SDK; the resilience layer owns them.
    """

    def __init__(self, config: ProviderConfig, client: AsyncOpenAI | None = None):
        super().__init__(config)
        self.client = client or AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.base_url if config.base_url and config.base_url != OPENAI_DEFAULT_BASE_URL else None,
            timeout=config.timeout,
            max_retries=0,
        )

    async def complete(self, request: CompletionRequest) -> CompletionResult:
        try:
            response = await self.client.chat.completions.create(
                model=request.model,
                messages=request.messages(),
                temperature=request.temperature,
                max_tokens=request.max_tokens,
                **request.extra,
            )
        except Exception as e:
            raise self._translate(e, request.model) from e

        choice = response.choices[0] if response.choices else None
        text = (choice.message.content or "") if choice else ""
        usage = {}
        if response.usage is not None:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }
        return CompletionResult(text=text.strip(), model=response.model or request.model, usage=usage)

    def _translate(self, error: Exception, model: str) -> Exception:
        """Map an SDK exception onto the internal provider exceptions."""
        details = {"provider": self.name, "model": model}
        status = getattr(error, "status_code", None)
        if status is not None:
            details["status_code"] = status

        if isinstance(error, (AuthenticationError, PermissionDeniedError)):
            error_class: type[ProviderError] = ProviderAuthenticationError
        elif isinstance(error, RateLimitError):
            error_class = ProviderRateLimitError
        elif isinstance(error, APITimeoutError):
            error_class = ProviderTimeoutError
        elif isinstance(error, APIConnectionError):
            error_class = ProviderConnectionError
        elif isinstance(error, BadRequestError):
            error_class = TokenLimitError if _is_context_length_error(error) else ProviderAPIError
        elif isinstance(error, APIStatusError) and error.status_code >= 500:
            error_class = ProviderServerError
        elif isinstance(error, APIError):
            error_class = ProviderAPIError
        else:
            return error

        logger.warning(
            "Provider call failed",
            stage=Stage.LLM_CALL,
            provider=self.name,
            model=model,
            error_type=type(error).__name__,
            mapped_to=error_class.__name__,
        )
        return error_class(f"{self.name} error: {error}", details=details)

    async def health_check(self) -> dict:
        return {"status": "configured", "provider": self.name, "base_url": self.config.base_url}

    async def close(self) -> None:
        await self.client.close()
