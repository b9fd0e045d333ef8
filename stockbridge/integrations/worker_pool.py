"""
Bounded pool of asyncio workers for work that runs after a webhook has been
acknowledged.

Once a job is queued it is not cancellable and nobody awaits its result, so
failures are reported through the pool's error channel instead: they are
logged, kept in `failures` (most recent first out) and passed to any
registered error handlers. Jobs are not retried.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Deque, List, Optional

from stockbridge.core.exceptions import WorkerPoolFullError

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[object]]


@dataclass
class JobFailure:
    job_name: str
    error_type: str
    error: str
    failed_at: datetime


class WorkerPool:
    def __init__(self, name: str = "worker-pool", workers: int = 4, queue_size: int = 500,
                 failure_history: int = 100):
        if workers < 1:
            raise ValueError("WorkerPool needs at least one worker")
        self.name = name
        self.workers = workers
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self.failures: Deque[JobFailure] = deque(maxlen=failure_history)
        self.processed = 0
        self._error_handlers: List[Callable[[JobFailure], None]] = []
        self._tasks: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def add_error_handler(self, handler: Callable[[JobFailure], None]):
        self._error_handlers.append(handler)

    async def start(self):
        if self.running:
            return
        self._tasks = [
            asyncio.create_task(self._worker(index), name=f"{self.name}-{index}")
            for index in range(self.workers)
        ]
        logger.info(f"Started {self.name} with {self.workers} worker(s)")

    def submit(self, job_name: str, job: Job):
        """Queue a job without waiting for it. Raises WorkerPoolFullError when saturated."""
        try:
            self.queue.put_nowait((job_name, job))
        except asyncio.QueueFull:
            logger.error(f"{self.name} queue is full, rejecting job {job_name}")
            raise WorkerPoolFullError(f"{self.name} is saturated")
        logger.debug(f"Queued {job_name} ({self.queue.qsize()} waiting)")

    async def join(self):
        await self.queue.join()

    async def stop(self, timeout: Optional[float] = 30.0):
        """Drain queued jobs (up to `timeout`), then stop the workers."""
        if self._tasks:
            try:
                await asyncio.wait_for(self.queue.join(), timeout=timeout)
            except asyncio.TimeoutError:
                logger.warning(f"{self.name} stopped with {self.queue.qsize()} job(s) still queued")
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info(f"Stopped {self.name}")

    async def _worker(self, index: int):
        while True:
            job_name, job = await self.queue.get()
            try:
                await job()
                self.processed += 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._record_failure(job_name, e)
            finally:
                self.queue.task_done()

    def _record_failure(self, job_name: str, error: Exception):
        failure = JobFailure(
            job_name=job_name,
            error_type=type(error).__name__,
            error=str(error),
            failed_at=datetime.now(timezone.utc),
        )
        self.failures.append(failure)
        logger.error(f"Job {job_name} failed: {failure.error_type}: {failure.error}", exc_info=error)
        for handler in self._error_handlers:
            try:
                handler(failure)
            except Exception:
                logger.exception(f"Error handler failed for job {job_name}")

    def recent_failures(self) -> List[dict]:
        """Failures, newest first."""
        return [
            {
                "job_name": f.job_name,
                "error_type": f.error_type,
                "error": f.error,
                "failed_at": f.failed_at.isoformat(),
            }
            for f in reversed(self.failures)
        ]
