"""
Vertex AI (Google GenAI SDK) completion client
"""

import os

from google import genai
from google.api_core import exceptions as google_exceptions
from google.genai.types import GenerateContentConfig, HttpOptions

from tier_gauge_core.domain.value_objects import ChatMessage, CompletionResponse
from tier_gauge_core.infrastructure.model_clients.base import CompletionCapability, RetryMixin


class VertexAIClient(RetryMixin, CompletionCapability):
    """Completion client using Google GenAI SDK (via Vertex AI)"""

    def __init__(
        self,
        model_name: str,
        project_id: str | None = None,
        location: str | None = None,
        timeout_seconds: int = 30,
        max_retries: int = 3,
        retry_delay_seconds: float = 1.0,
    ):
        """
        Args:
            model_name: Model name (e.g. gemini-2.5-flash)
            project_id: GCP project ID (falls back to environment variable if not specified)
            location: Region (default: global)
            timeout_seconds: Timeout in seconds (default: 30)
            max_retries: Maximum number of retries (default: 3)
            retry_delay_seconds: Base backoff delay (default: 1.0)
        """
        self.model_name = model_name
        self.project_id = project_id or os.environ.get("GCP_PROJECT_ID")
        self.location = location or "global"
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.retry_delay_seconds = retry_delay_seconds

        if not self.project_id:
            raise ValueError("GCP_PROJECT_ID is not set")

        # Timeout is configured via HttpOptions (milliseconds)
        self.client = genai.Client(
            vertexai=True,
            project=self.project_id,
            location=self.location,
            http_options=HttpOptions(timeout=timeout_seconds * 1000),
        )

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
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        contents = "\n\n".join(m.content for m in messages if m.role != "system")
        config = GenerateContentConfig(
            temperature=temperature,
            max_output_tokens=max_tokens,
            system_instruction=system or None,
        )

        async def _call():
            response = await self.client.aio.models.generate_content(
                model=self.model_name,
                contents=contents,
                config=config,
            )

            prompt_tokens = None
            completion_tokens = None
            if hasattr(response, "usage_metadata") and response.usage_metadata:
                prompt_tokens = getattr(response.usage_metadata, "prompt_token_count", 0) or 0
                completion_tokens = getattr(response.usage_metadata, "candidates_token_count", 0) or 0

            return CompletionResponse(
                content=(response.text or "").strip(),
                total_tokens=(prompt_tokens or 0) + (completion_tokens or 0),
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                model_name=self.model_name,
            )

        return await self._with_retry(
            _call,
            retryable_exceptions=(
                google_exceptions.DeadlineExceeded,
                google_exceptions.ServiceUnavailable,
                google_exceptions.ResourceExhausted,
            ),
        )
