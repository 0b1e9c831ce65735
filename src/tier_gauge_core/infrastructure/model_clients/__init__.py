"""
Completion client package

Provides a unified async completion interface to each LLM provider.
"""

from tier_gauge_core.infrastructure.model_clients.base import (
    CapabilityBindingError,
    CompletionCapability,
    bind_capability,
)
from tier_gauge_core.infrastructure.model_clients.factory import create_client
from tier_gauge_core.domain.value_objects import CompletionResponse

__all__ = [
    "CapabilityBindingError",
    "CompletionCapability",
    "CompletionResponse",
    "bind_capability",
    "create_client",
]
