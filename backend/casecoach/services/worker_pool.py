"""Analysis Worker Pool — bounded queue drained by a fixed set of asyncio workers.

Invariants:
    - submit() never blocks the request path: it enqueues or raises ServiceBusyError
    - A handler exception is logged and the worker keeps serving the queue
    - After shutdown() begins, submit() raises ServiceBusyError
    - shutdown(drain=True) returns only after every queued and running item settled

Design Decisions:
    - Queue depth is the back-pressure limit; draining on shutdown is driven by
      the lifespan, not by the workers
"""

import asyncio
import logging
from typing import Awaitable, Callable, Generic, TypeVar

from casecoach.core.errors import ServiceBusyError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AnalysisWorkerPool(Generic[T]):
    """Runs handler(item) for each submitted item on a bounded pool of workers."""

    def __init__(
        self,
        handler: Callable[[T], Awaitable[None]],
        workers: int = 4,
        max_pending: int = 100,
    ):
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self._handler = handler
        self._worker_count = workers
        self._queue: asyncio.Queue[T] = asyncio.Queue(maxsize=max_pending)
        self._workers: list[asyncio.Task] = []
        self._closing = False

    @property
    def running(self) -> bool:
        return bool(self._workers) and not self._closing

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        if self._workers:
            return
        self._workers = [
            asyncio.get_running_loop().create_task(
                self._work(index), name=f"analysis-worker-{index}",
            )
            for index in range(self._worker_count)
        ]
        logger.info(f"Analysis worker pool started ({self._worker_count} workers)")

    def submit(self, item: T) -> None:
        if self._closing:
            raise ServiceBusyError()
        try:
            self._queue.put_nowait(item)
        except asyncio.QueueFull:
            logger.warning(f"Analysis queue full ({self._queue.maxsize} pending)")
            raise ServiceBusyError()

    async def join(self) -> None:
        """Wait until every item submitted so far has been handled."""
        await self._queue.join()

    async def _work(self, index: int) -> None:
        while True:
            item = await self._queue.get()
            try:
                await self._handler(item)
            except Exception:
                logger.exception(f"Analysis worker {index} handler failed")
            finally:
                self._queue.task_done()

    async def shutdown(self, drain: bool = True) -> None:
        self._closing = True
        if drain and self._workers:
            await self._queue.join()
        elif self.pending:
            logger.warning(f"Dropping {self.pending} queued analysis items on shutdown")
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("Analysis worker pool stopped")
