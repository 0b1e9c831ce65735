"""
Anthropic Claude completion client
"""

import os

from anthropic import AsyncAnthropic, APIConnectionError, RateLimitError, APIStatusError

from tier_gauge_core.domain.value_objects import ChatMessage, CompletionResponse
from tier_gauge_core.infrastructure.model_clients.base import CompletionCapability, RetryMixin


class ClaudeClient(RetryMixin, CompletionCapability):
    """Claude client using the Anthropic API"""

    def __init__(
        self,
        model_name: str,
        api_key: str | None = None,
        max_retries: int = 3,
        retry_delay_seconds: float = 1.0,
    ):
        """
        Args:
            model_name: Model name (e.g. claude-sonnet-4-5-20250514)
            api_key: Anthropic API key (falls back to environment variable if not specified)
            max_retries: Maximum number of retries (default: 3)
            retry_delay_seconds: Base backoff delay (default: 1.0)
        """
        self.model_name = model_name
        self.api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        self.max_retries = max_retries
        self.retry_delay_seconds = retry_delay_seconds

        if not self.api_key:
            raise ValueError("ANTHROPIC_API_KEY is not set")

        self.client = AsyncAnthropic(api_key=self.api_key)

    async def complete(
        self,
        messages: list[ChatMessage],
        max_tokens: int,
        temperature: float,
    ) -> CompletionResponse:
        """
        Send chat messages and retrieve the completion

        System messages are passed through the dedicated `system` parameter.

        Raises:
            Exception: If the maximum number of retries is exceeded
        """
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        chat = [m.to_dict() for m in messages if m.role != "system"]

        async def _call():
            kwargs = {
                "model": self.model_name,
                "max_tokens": max_tokens,
                "temperature": temperature,
                "messages": chat,
            }
            if system:
                kwargs["system"] = system
            response = await self.client.messages.create(**kwargs)

            content = ""
            if response.content:
                content = response.content[0].text.strip()

            input_tokens = getattr(response.usage, "input_tokens", 0) or 0
            output_tokens = getattr(response.usage, "output_tokens", 0) or 0

            return CompletionResponse(
                content=content,
                total_tokens=input_tokens + output_tokens,
                prompt_tokens=input_tokens,
                completion_tokens=output_tokens,
                model_name=self.model_name,
            )

        return await self._with_retry(
            _call,
            retryable_exceptions=(APIConnectionError, RateLimitError, APIStatusError),
        )
