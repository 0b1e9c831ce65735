"""
Completion capability base class and retry mixin

Defines the abstract interface every completion engine must satisfy,
the one-time binding check, and the RetryMixin that consolidates shared
async retry logic for provider clients.
"""

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod

from tier_gauge_core.domain.value_objects import ChatMessage, CompletionResponse

logger = logging.getLogger(__name__)


class CapabilityBindingError(TypeError):
    """Raised when an engine does not satisfy the completion capability interface"""


class RetryMixin:
    """Exponential backoff retry. Subclasses set self.max_retries."""

    max_retries: int = 3
    retry_delay_seconds: float = 1.0

    async def _with_retry(self, fn, retryable_exceptions=(Exception,)):
        """
        Await fn() with exponential backoff retry.

        Args:
            fn: Coroutine function with no arguments
            retryable_exceptions: Tuple of exception types eligible for retry

        Returns:
            The return value of await fn()

        Raises:
            ValueError: If max_retries is less than 1
            Exception: The last exception if max retries are exceeded
        """
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1.")

        last_exception: Exception | None = None
        for attempt in range(self.max_retries):
            try:
                return await fn()
            except retryable_exceptions as e:
                last_exception = e
                if attempt < self.max_retries - 1:
                    delay = self.retry_delay_seconds * (2 ** attempt)
                    logger.warning(
                        "Attempt %d/%d failed (%s), retrying in %.1fs",
                        attempt + 1, self.max_retries, e, delay,
                    )
                    await asyncio.sleep(delay)

        assert last_exception is not None
        raise last_exception


class CompletionCapability(ABC):
    """Abstract base class for completion engines"""

    model_name: str = ""

    @abstractmethod
    async def complete(
        self,
        messages: list[ChatMessage],
        max_tokens: int,
        temperature: float,
    ) -> CompletionResponse:
        """Send chat messages and retrieve the completion"""
        pass

    async def health_check(self) -> bool:
        """
        Check availability with a one-token completion

        Returns:
            True when the engine answered with a choice
        """
        try:
            response = await self.complete(
                [ChatMessage(role="user", content="ping")],
                max_tokens=1,
                temperature=0.0,
            )
        except Exception as e:
            logger.warning("Health check failed for %s: %s", self.model_name or self, e)
            return False
        return response is not None


def bind_capability(engine):
    """
    Validate an engine once, before it is used for execution

    Args:
        engine: Object expected to expose an async complete(messages, max_tokens, temperature)

    Returns:
        The same engine

    Raises:
        CapabilityBindingError: If the engine does not satisfy the interface
    """
    if engine is None:
        raise CapabilityBindingError("No completion engine supplied")
    complete = getattr(engine, "complete", None)
    if complete is None or not callable(complete):
        raise CapabilityBindingError(
            f"{type(engine).__name__} does not provide a complete() method"
        )
    if not inspect.iscoroutinefunction(complete):
        raise CapabilityBindingError(
            f"{type(engine).__name__}.complete() must be a coroutine function"
        )
    return engine
