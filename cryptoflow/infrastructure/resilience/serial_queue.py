"""Single-lane execution queue for calls to the AI provider.

Tasks run one at a time in submission order. After each task settles the
lane stays closed for a fixed cooldown before the next task is started,
which smooths bursts against the provider's rate limit. Retries of a task
happen inside its own slot (see api_retry), so they never interleave with
other queued work.

There is no cancellation: a caller that stops awaiting its result only
abandons interest, the task still runs and still occupies the lane.
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Optional, TypeVar

from cryptoflow.domain.events.api_events import (
    TaskCompleted, TaskQueued, TaskStarted, dispatch_event
)

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_SECONDS = 2.0

T = TypeVar("T")
SleepFunc = Callable[[float], Awaitable[Any]]


@dataclass
class QueuedTask:
    """A deferred unit of work and the future its submitter awaits."""
    task_id: int
    task: Callable[[], Awaitable[Any]]
    future: "asyncio.Future[Any]"
    enqueued_at: float


class SerialExecutionQueue:
    """Runs submitted coroutine factories strictly one at a time, FIFO."""

    def __init__(
        self,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        sleep: SleepFunc = asyncio.sleep,
    ):
        """Initializes the queue.

        Args:
            cooldown_seconds: Idle gap between the end of one task and the
                start of the next.
            sleep: Awaitable sleep used for the cooldown (injectable for tests).
        """
        self.cooldown_seconds = cooldown_seconds
        self._sleep = sleep
        self._pending: Deque[QueuedTask] = deque()
        self._next_task_id = 0
        # The lane state is derived from these tasks. A task cancelled before
        # it ever ran (event loop shutdown) counts as done and frees the lane.
        self._runner: Optional[asyncio.Task] = None
        self._cooldown: Optional[asyncio.Task] = None
        logger.info(f"SerialExecutionQueue initialized: cooldown={cooldown_seconds}s")

    @property
    def pending_count(self) -> int:
        """Number of tasks waiting for the lane (excludes the running one)."""
        return len(self._pending)

    @property
    def _executing(self) -> bool:
        return self._runner is not None and not self._runner.done()

    @property
    def _cooling_down(self) -> bool:
        return self._cooldown is not None and not self._cooldown.done()

    @property
    def is_busy(self) -> bool:
        """True while a task is executing or the lane is cooling down."""
        return self._executing or self._cooling_down

    async def submit(self, task: Callable[[], Awaitable[T]]) -> T:
        """Appends task to the queue and waits for its result.

        Args:
            task: Zero-argument callable returning an awaitable. It is called
                exactly once, when the task reaches the head of the queue.

        Returns:
            Whatever the task's awaitable returns.

        Raises:
            Exception: Whatever the task raised.
        """
        loop = asyncio.get_running_loop()
        self._next_task_id += 1
        item = QueuedTask(
            task_id=self._next_task_id,
            task=task,
            future=loop.create_future(),
            enqueued_at=time.monotonic(),
        )
        self._pending.append(item)
        dispatch_event(TaskQueued(task_id=item.task_id, queue_length=len(self._pending)))
        logger.debug(f"Task {item.task_id} queued ({len(self._pending)} pending).")
        self._process_next()
        return await item.future

    def _process_next(self) -> None:
        """Starts the head task if the lane is free."""
        if self._executing or self._cooling_down or not self._pending:
            return
        item = self._pending.popleft()
        self._runner = asyncio.ensure_future(self._run(item))

    async def _run(self, item: QueuedTask) -> None:
        started = time.monotonic()
        dispatch_event(TaskStarted(task_id=item.task_id, waited_seconds=started - item.enqueued_at))
        succeeded = False
        cancelled = False
        try:
            result = await item.task()
            succeeded = True
            if not item.future.done():
                item.future.set_result(result)
        except asyncio.CancelledError:
            # Only happens when the event loop itself is shutting down
            cancelled = True
            item.future.cancel()
            raise
        except Exception as e:
            logger.debug(f"Task {item.task_id} failed: {type(e).__name__}: {e}")
            if not item.future.done():
                item.future.set_exception(e)
        finally:
            # Released on every path, otherwise the lane deadlocks
            self._runner = None
            dispatch_event(TaskCompleted(
                task_id=item.task_id,
                succeeded=succeeded,
                duration_seconds=time.monotonic() - started,
            ))
            if not cancelled:
                self._cooldown = asyncio.ensure_future(self._cool_down())

    async def _cool_down(self) -> None:
        try:
            await self._sleep(self.cooldown_seconds)
        finally:
            self._cooldown = None
        self._process_next()
