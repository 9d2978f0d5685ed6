"""Background task queue for fire-and-forget calls with bounded retry."""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Optional

logger = logging.getLogger(__name__)

# Attempts per task including the first one
MAX_ATTEMPTS = 3

# Initial retry delay, doubled after each failed attempt (seconds)
BASE_RETRY_DELAY = 0.1

MAX_QUEUE_SIZE = 1000


@dataclass
class QueuedTask:
    name: str
    fn: Callable[..., Awaitable[Any]]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    attempts: int = 0


@dataclass
class TaskFailure:
    name: str
    attempts: int
    error: str
    failed_at: datetime = field(default_factory=datetime.utcnow)


class BackgroundTaskQueue:
    """Runs queued coroutines on a single worker, retrying failures a bounded number of times.

    Callers never wait on the work itself. Tasks that exhaust their attempts
    are logged and kept in `failures`.
    """

    def __init__(
        self,
        max_attempts: int = MAX_ATTEMPTS,
        base_delay: float = BASE_RETRY_DELAY,
        max_size: int = MAX_QUEUE_SIZE,
    ):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_size)
        self._worker: Optional[asyncio.Task] = None
        self.failures: List[TaskFailure] = []

    def start(self) -> None:
        if self._worker is None:
            self._worker = asyncio.create_task(self._run(), name="background-task-queue")
            logger.info("Background task queue started")

    async def stop(self) -> None:
        """Drain pending tasks then stop the worker."""
        if self._worker is None:
            return
        await self._queue.join()
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("Background task queue stopped")

    def submit(self, name: str, fn: Callable[..., Awaitable[Any]], *args, **kwargs) -> bool:
        """Queue a coroutine function. Returns False when the queue is full."""
        self.start()
        try:
            self._queue.put_nowait(QueuedTask(name=name, fn=fn, args=args, kwargs=kwargs))
            return True
        except asyncio.QueueFull:
            logger.warning(f"Background task queue full, dropping task {name}")
            return False

    async def join(self) -> None:
        """Wait until every queued task has finished or given up."""
        await self._queue.join()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def _run(self) -> None:
        while True:
            task = await self._queue.get()
            try:
                await self._execute(task)
            finally:
                self._queue.task_done()

    async def _execute(self, task: QueuedTask) -> None:
        delay = self.base_delay
        while True:
            task.attempts += 1
            try:
                await task.fn(*task.args, **task.kwargs)
                return
            except Exception as e:
                if task.attempts >= self.max_attempts:
                    logger.error(f"Background task {task.name} failed after {task.attempts} attempts: {e}")
                    self.failures.append(TaskFailure(name=task.name, attempts=task.attempts, error=str(e)))
                    return
                logger.warning(
                    f"Background task {task.name} failed, retrying in {delay}s "
                    f"(attempt {task.attempts}/{self.max_attempts}): {e}"
                )
                await asyncio.sleep(delay)
                delay *= 2
