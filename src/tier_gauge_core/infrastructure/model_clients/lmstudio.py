"""
LMStudio (OpenAI-compatible API) completion client
"""

import os

import openai
from openai import AsyncOpenAI

from tier_gauge_core.domain.value_objects import ChatMessage, CompletionResponse
from tier_gauge_core.infrastructure.model_clients.base import CompletionCapability, RetryMixin


class LMStudioClient(RetryMixin, CompletionCapability):
    """Client using LMStudio or any OpenAI-compatible chat completions endpoint"""

    def __init__(
        self,
        model_name: str,
        base_url: str | None = None,
        api_key: str | None = None,
        max_retries: int = 3,
        retry_delay_seconds: float = 1.0,
        timeout_seconds: float = 120,
    ):
        """
        Args:
            model_name: Model name (e.g. lmstudio/qwen2.5-7b)
            base_url: API endpoint (falls back to LMSTUDIO_BASE_URL env var if not specified)
            api_key: API key (falls back to LMSTUDIO_API_KEY env var; usually not required for LMStudio)
            max_retries: Maximum number of retries (default: 3)
            retry_delay_seconds: Base backoff delay (default: 1.0)
            timeout_seconds: HTTP timeout in seconds (default: 120)
        """
        self.model_name = model_name
        # Strip the lmstudio/ prefix to get the model name for the API
        self.api_model_name = model_name.removeprefix("lmstudio/")
        self.max_retries = max_retries
        self.retry_delay_seconds = retry_delay_seconds

        # Configuration priority: argument > environment variable > default value
        base_url = base_url or os.environ.get("LMSTUDIO_BASE_URL", "http://localhost:1234/v1")
        api_key = api_key or os.environ.get("LMSTUDIO_API_KEY", "lm-studio")

        self.base_url = base_url
        self.client = AsyncOpenAI(base_url=base_url, api_key=api_key, timeout=timeout_seconds)

    async def complete(
        self,
        messages: list[ChatMessage],
        max_tokens: int,
        temperature: float,
    ) -> CompletionResponse:
        """
        Send chat messages and retrieve the completion

        Raises:
            Exception: If the maximum number of retries is exceeded
        """
        async def _call():
            response = await self.client.chat.completions.create(
                model=self.api_model_name,
                messages=[m.to_dict() for m in messages],
                temperature=temperature,
                max_tokens=max_tokens,
            )
            content = ""
            if response.choices:
                content = (response.choices[0].message.content or "").strip()

            prompt_tokens = None
            completion_tokens = None
            total_tokens = 0
            if response.usage:
                prompt_tokens = response.usage.prompt_tokens
                completion_tokens = response.usage.completion_tokens
                total_tokens = response.usage.total_tokens or 0

            return CompletionResponse(
                content=content,
                total_tokens=total_tokens,
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                model_name=self.model_name,
            )

        return await self._with_retry(
            _call,
            retryable_exceptions=(
                openai.APIConnectionError,
                openai.RateLimitError,
                openai.APIStatusError,
            ),
        )
