"""
Execution context

Explicit, passed-by-reference state for a run: the stop signal, named
execution leases, an exclusive-section lock, and the progress channel.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager, contextmanager
from typing import Callable

from tier_gauge_core.domain.entities import ProgressEvent

logger = logging.getLogger(__name__)


class ExecutionLeaseError(RuntimeError):
    """Raised when a named lease is requested while it is already held"""


class ProgressPublisher:
    """Fan-out channel for progress events"""

    def __init__(self):
        self._subscribers: list[Callable[[ProgressEvent], None]] = []

    def subscribe(self, callback: Callable[[ProgressEvent], None]) -> Callable[[], None]:
        """
        Register a subscriber

        Returns:
            A callable that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, phase: str, completed: int = 0, total: int = 0, **context) -> ProgressEvent:
        """Emit an event to every subscriber; subscriber failures are logged"""
        event = ProgressEvent(phase=phase, completed=completed, total=total, context=context)
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as e:
                logger.warning("Progress subscriber failed on %s: %s", phase, e)
        return event


class ExecutionContext:
    """State shared by every operation of one run"""

    def __init__(self, publisher: ProgressPublisher | None = None):
        self.progress = publisher or ProgressPublisher()
        self._stop_requested = False
        self._leases: set[str] = set()
        self._lock = asyncio.Lock()

    def request_stop(self) -> None:
        logger.info("Stop requested")
        self._stop_requested = True

    def is_stop_requested(self) -> bool:
        return self._stop_requested

    def clear_stop(self) -> None:
        self._stop_requested = False

    @contextmanager
    def lease(self, name: str = "execution"):
        """
        Hold a named lease for the duration of the block

        Raises:
            ExecutionLeaseError: If the lease is already held
        """
        if name in self._leases:
            raise ExecutionLeaseError(f"Lease '{name}' is already held")
        self._leases.add(name)
        try:
            yield self
        finally:
            self._leases.discard(name)

    def is_lease_active(self, name: str | None = None) -> bool:
        if name is None:
            return bool(self._leases)
        return name in self._leases

    @asynccontextmanager
    async def exclusive(self):
        """Serialize exclusive work such as cleanup across concurrent tasks"""
        async with self._lock:
            yield
