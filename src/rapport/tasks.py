"""Supervised background tasks detached from the request that spawns them."""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

from .logging import JSONLLogger, get_logger

logger = logging.getLogger(__name__)


class TaskSupervisor:
    """Spawns detached tasks and contains their failures.

    Spawned tasks are not children of the caller: cancelling the request
    that spawned one leaves it running. Exceptions are logged when the
    task finishes and never re-raised.
    """

    def __init__(self, json_logger: JSONLLogger | None = None) -> None:
        self.json_logger = json_logger or get_logger()
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of tasks still running."""
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task:
        """Schedule coro on the running loop and supervise it."""
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)

        if task.cancelled():
            logger.warning(f"Background task {task.get_name()} was cancelled")
            return

        error = task.exception()
        if error is not None:
            logger.error(
                f"Background task {task.get_name()} failed",
                exc_info=(type(error), error, error.__traceback__),
            )
            self.json_logger.log(
                "background_task_failed",
                error=str(error) or type(error).__name__,
                task=task.get_name(),
            )

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for outstanding tasks, cancelling any left after timeout."""
        if not self._tasks:
            return

        tasks = list(self._tasks)
        _, still_running = await asyncio.wait(tasks, timeout=timeout)

        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.wait(still_running)
