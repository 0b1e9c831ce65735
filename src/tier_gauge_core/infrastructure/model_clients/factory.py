"""
Completion client factory

Creates the appropriate client instance based on the model name.
"""

from __future__ import annotations

from tier_gauge_core.harness_config import HarnessConfig, load_config
from tier_gauge_core.infrastructure.model_clients.base import CompletionCapability
from tier_gauge_core.infrastructure.model_clients.vertex_ai import VertexAIClient
from tier_gauge_core.infrastructure.model_clients.claude import ClaudeClient
from tier_gauge_core.infrastructure.model_clients.lmstudio import LMStudioClient


def create_client(model_name: str, config: HarnessConfig | None = None) -> CompletionCapability:
    """
    Create the appropriate client based on the model name

    Args:
        model_name: Model name
        config: HarnessConfig (loads from env if not provided)

    Returns:
        CompletionCapability: The appropriate client instance
    """
    if config is None:
        config = load_config()

    timeout = config.isolation.timeout_seconds
    retries = config.isolation.max_retries
    retry_delay = config.isolation.retry_delay_seconds

    if model_name.startswith("lmstudio/"):
        return LMStudioClient(
            model_name,
            base_url=config.lmstudio.base_url,
            api_key=config.lmstudio.api_key,
            max_retries=retries,
            retry_delay_seconds=retry_delay,
            timeout_seconds=timeout,
        )
    elif model_name.startswith("claude"):
        return ClaudeClient(model_name, max_retries=retries, retry_delay_seconds=retry_delay)
    else:
        return VertexAIClient(model_name, timeout_seconds=timeout, max_retries=retries, retry_delay_seconds=retry_delay)
