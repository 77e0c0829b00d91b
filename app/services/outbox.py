"""
Delivery Outbox

In-process registry for fire-and-forget channel deliveries
(email, push). Callers submit a coroutine and return immediately;
the outbox keeps the task alive, logs its failure and counts it.

Nothing is persisted or retried: a crash loses in-flight deliveries.
"""

import asyncio
import logging
from typing import Coroutine, Optional, Set

logger = logging.getLogger(__name__)


class DeliveryOutbox:
    """Tracks background delivery tasks until they finish."""

    def __init__(self):
        # Strong references; the event loop only keeps weak ones
        self._tasks: Set[asyncio.Task] = set()
        self.completed = 0
        self.failed = 0

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, coro: Coroutine, name: Optional[str] = None) -> asyncio.Task:
        """Schedule a delivery without awaiting it."""
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"Delivery {task.get_name()} was cancelled")
            self.failed += 1
            return

        error = task.exception()
        if error is not None:
            self.failed += 1
            logger.error(f"Delivery {task.get_name()} failed: {error}", exc_info=error)
        else:
            self.completed += 1

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for every in-flight delivery; cancel what is left after timeout."""
        if not self._tasks:
            return

        tasks = list(self._tasks)
        logger.info(f"Draining {len(tasks)} pending deliveries")
        done, still_pending = await asyncio.wait(tasks, timeout=timeout)
        for task in still_pending:
            task.cancel()
        if still_pending:
            await asyncio.gather(*still_pending, return_exceptions=True)
            logger.warning(f"Cancelled {len(still_pending)} deliveries on drain timeout")


# ============================================================
# Singleton Instance
# ============================================================

_outbox: Optional[DeliveryOutbox] = None


def get_outbox() -> DeliveryOutbox:
    global _outbox
    if _outbox is None:
        _outbox = DeliveryOutbox()
    return _outbox
