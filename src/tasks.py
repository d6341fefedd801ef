# src/tasks.py
import asyncio
from typing import Any, Awaitable, Callable

from src.logging import get_logger

logger = get_logger(__name__)


class BackgroundTaskRunner:
    """Fire-and-forget runner for side effects that must not fail a request.

    Jobs are scheduled as asyncio tasks. The runner keeps a reference to each
    pending task until it finishes and logs any exception it raised; nothing
    is ever re-raised to the caller that submitted the job.
    """

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    def submit(
        self,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
        name: str | None = None,
        **kwargs: Any,
    ) -> asyncio.Task:
        task_name = name or getattr(func, "__name__", "background-task")
        task = asyncio.create_task(func(*args, **kwargs), name=task_name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("background_task_cancelled", task=task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "background_task_failed",
                task=task.get_name(),
                error=str(exc),
                exc_info=exc,
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every task submitted so far, including ones they submit."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


task_runner = BackgroundTaskRunner()
