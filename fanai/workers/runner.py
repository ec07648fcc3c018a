"""
Background Runner
Detaches generation pipelines from the request that submitted them.

Tasks run on the server's event loop. The runner keeps a strong reference to
each task until it finishes, logs any exception it ended with, and can wait
for everything still in flight on shutdown.
"""

import asyncio
import logging
from typing import Coroutine, Optional, Set

logger = logging.getLogger(__name__)


class BackgroundRunner:
    """In-process task runner backed by asyncio.create_task."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine, name: Optional[str] = None) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        logger.info(f"[Runner] Spawned {task.get_name()} ({self.pending} in flight)")
        return task

    def _on_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"[Runner] {task.get_name()} cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error(f"[Runner] {task.get_name()} failed: {error!r}", exc_info=error)

    async def drain(self, timeout: Optional[float] = None):
        """Wait for in-flight tasks; cancel whatever is left after timeout."""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        logger.info(f"[Runner] Draining {len(tasks)} task(s)")
        done, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
