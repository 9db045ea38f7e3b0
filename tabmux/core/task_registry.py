"""Tracking for the supervisor's background pump tasks.

Pumps are fire-and-forget from the controller's point of view; the registry
keeps references so they are not garbage collected, logs their failures and
cancels whatever is left when the session ends.
"""

from __future__ import annotations

import asyncio
from typing import Coroutine, TypeVar

from instrukt_ai_logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class TaskRegistry:
    """Registry of live background asyncio tasks."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[object]] = set()

    def _on_task_done(self, task: asyncio.Task[object]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc:
            logger.error("Background task %s failed: %s", task.get_name(), exc, exc_info=exc)

    def spawn(self, coro: Coroutine[object, object, T], name: str | None = None) -> asyncio.Task[T]:
        """Start `coro` as a tracked task."""
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)  # type: ignore[arg-type]
        task.add_done_callback(self._on_task_done)  # type: ignore[arg-type]
        logger.debug("Spawned tracked task: %s (total: %d)", name or f"<unnamed-{id(task)}>", len(self._tasks))
        return task

    async def shutdown(self, timeout: float = 1.0) -> None:
        """Cancel every tracked task and wait up to `timeout` seconds for them to finish."""
        if not self._tasks:
            return

        for task in self._tasks:
            if not task.done():
                task.cancel()

        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if pending:
            logger.warning("Shutdown timeout: %d tasks still pending after %.1fs", len(pending), timeout)

    def task_count(self) -> int:
        return len(self._tasks)
