import asyncio
from collections import deque
from collections.abc import Iterable

from reflectai.core.logging import get_logger
from reflectai.llm_providers.base_provider import (
    BaseProvider,
    CompletionRequest,
    CompletionResult,
    ProviderConfig,
)

logger = get_logger(__name__)


class FakeProvider(BaseProvider):
    """
    A fake LLM provider for local development and tests.

    Returns a deterministic reflection of the input. Errors queued with
    ``fail_with`` are raised, in order, by the next calls.
    """

    def __init__(
        self,
        config: ProviderConfig,
        latency: float = 0.0,
        failures: Iterable[Exception] | None = None,
        response_text: str | None = None,
    ):
        super().__init__(config)
        self.latency = latency
        self.response_text = response_text
        self._failures: deque[Exception] = deque(failures or ())
        self.calls: list[CompletionRequest] = []

    def fail_with(self, *errors: Exception) -> None:
        self._failures.extend(errors)

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def complete(self, request: CompletionRequest) -> CompletionResult:
        self.calls.append(request)

        if self.latency:
            await asyncio.sleep(self.latency)

        if self._failures:
            raise self._failures.popleft()

        text = self.response_text or self._generate_response_content(request.user_input)
        prompt_tokens = max(1, (len(request.system_prompt) + len(request.user_input)) // 4)
        completion_tokens = max(1, len(text) // 4)
        return CompletionResult(
            text=text,
            model=request.model,
            usage={
                "prompt_tokens": prompt_tokens,
                "completion_tokens": completion_tokens,
                "total_tokens": prompt_tokens + completion_tokens,
            },
        )

    async def health_check(self) -> dict:
        return {"status": "healthy", "provider": self.name}

    @staticmethod
    def _generate_response_content(user_input: str) -> str:
        snippet = user_input.strip()[:80]
        return f"It sounds like you are reflecting on: {snippet}. What feels most important about that?"
