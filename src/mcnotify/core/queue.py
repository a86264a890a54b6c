"""Single-worker FIFO task queue."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from types import TracebackType
from typing import Any, Self, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class _QueuedTask:
    name: str
    func: Callable[[], Awaitable[Any]]
    future: asyncio.Future[Any]


class TaskQueue:
    """Runs submitted coroutines one at a time, in arrival order.

    The result (or exception) of each task is handed back to whoever
    submitted it. The worker keeps going after a failed task.
    """

    def __init__(self, pause: float = 0.5) -> None:
        """Initialize TaskQueue.

        Args:
            pause: Seconds to wait between two tasks
        """
        self._pause = pause
        self._queue: asyncio.Queue[_QueuedTask] | None = None
        self._worker: asyncio.Task[None] | None = None
        self._current: _QueuedTask | None = None

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Async context manager exit."""
        await self.stop()

    @property
    def running(self) -> bool:
        """Whether the worker is alive."""
        return self._worker is not None and not self._worker.done()

    @property
    def pending(self) -> int:
        """Number of tasks waiting to run."""
        return self._queue.qsize() if self._queue is not None else 0

    def start(self) -> None:
        """Start the worker on the running event loop."""
        self._ensure_started()

    def _ensure_started(self) -> asyncio.Queue[_QueuedTask]:
        if self._queue is not None and self.running:
            return self._queue
        queue: asyncio.Queue[_QueuedTask] = asyncio.Queue()
        self._queue = queue
        self._worker = asyncio.create_task(
            self._run(queue), name="mcnotify-task-queue"
        )
        return queue

    async def stop(self) -> None:
        """Stop the worker and cancel tasks that have not finished."""
        # The worker clears _current on its way out
        current = self._current
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

        if current is not None:
            current.future.cancel()
            self._current = None
        if self._queue is not None:
            while not self._queue.empty():
                self._queue.get_nowait().future.cancel()

    async def submit(self, name: str, func: Callable[[], Awaitable[T]]) -> T:
        """Queue a task and wait for its result.

        Args:
            name: Task name for logging
            func: Zero-argument coroutine function to run

        Returns:
            Whatever the task returns

        Raises:
            Exception: Whatever the task raised
        """
        queue = self._ensure_started()

        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        await queue.put(_QueuedTask(name, func, future))
        if queue.qsize() > 1:
            logger.debug("Task %s queued behind %d others", name, queue.qsize() - 1)
        return await future

    async def _run(self, queue: asyncio.Queue[_QueuedTask]) -> None:
        while True:
            task = await queue.get()
            self._current = task
            try:
                if task.future.cancelled():
                    continue
                result = await task.func()
            except Exception as e:
                logger.error("Task %s failed: %s", task.name, e)
                if not task.future.done():
                    task.future.set_exception(e)
            else:
                if not task.future.done():
                    task.future.set_result(result)
            finally:
                self._current = None
                self._queue.task_done()

            if self._pause:
                await asyncio.sleep(self._pause)
