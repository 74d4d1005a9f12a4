# src/goalcore/autonomous/op_queue.py
"""
Single-writer serialization queue for Goal Store mutations.

The three background cycles and explicit API calls all write through one
``OperationQueue``.  Operations run strictly in submission order, one at a
time.  A failing operation is retried once; if the retry also fails, the
error is wrapped in ``StoreOperationFailed`` and raised to the submitter
while the queue keeps serving later operations.

Operations must not submit to the same queue from inside themselves.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

from ..exceptions import StoreOperationFailed

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OperationQueue:
    """
    FIFO of async operations executed one at a time.

    ``asyncio.Lock`` wakes waiters in acquisition order, which gives the
    submission-order guarantee.

    Example:
        >>> queue = OperationQueue()
        >>> await queue.submit(lambda: store.update_goal(goal_id, progress=40), "update_progress")
    """

    def __init__(self, retry_delay: float = 0.0) -> None:
        self._lock = asyncio.Lock()
        self._retry_delay = retry_delay
        self._pending = 0
        self.completed = 0
        self.retried = 0
        self.failed = 0

    @property
    def pending(self) -> int:
        """Operations submitted but not yet finished (including the running one)."""
        return self._pending

    async def submit(self, operation: Callable[[], Awaitable[T]], name: str = "operation") -> T:
        self._pending += 1
        try:
            async with self._lock:
                return await self._run(operation, name)
        finally:
            self._pending -= 1

    async def _run(self, operation: Callable[[], Awaitable[T]], name: str) -> T:
        try:
            result = await operation()
        except Exception as first_error:
            logger.warning("Store operation '%s' failed, retrying once: %s", name, first_error)
            self.retried += 1
            if self._retry_delay:
                await asyncio.sleep(self._retry_delay)
            try:
                result = await operation()
            except Exception as e:
                self.failed += 1
                logger.error("Store operation '%s' failed after retry: %s", name, e)
                raise StoreOperationFailed(name, f"{type(e).__name__}: {e}") from e
        self.completed += 1
        return result

    def get_status(self) -> dict[str, Any]:
        return {
            "pending": self._pending,
            "completed": self.completed,
            "retried": self.retried,
            "failed": self.failed,
        }
