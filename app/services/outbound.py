"""Background queue for outbound platform calls.

Both Asana and GitLab retry webhook deliveries that answer slowly, so the
inbound handlers only enqueue their Asana writes and return. Workers run the
jobs, retry failures a few times and keep simple counters.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

JobFactory = Callable[[], Awaitable[Any]]


@dataclass
class QueueStats:
    submitted: int = 0
    succeeded: int = 0
    failed: int = 0
    retried: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class _Job:
    label: str
    factory: JobFactory
    attempt: int = 0


class OutboundQueue:
    def __init__(
        self,
        *,
        maxsize: int = 200,
        workers: int = 4,
        max_attempts: int = 3,
        retry_delay: float = 1.0,
    ) -> None:
        self.maxsize = maxsize
        self.worker_count = max(1, workers)
        self.max_attempts = max(1, max_attempts)
        self.retry_delay = retry_delay
        self.stats = QueueStats()
        self._queue: Optional[asyncio.Queue[_Job]] = None
        self._workers: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue else 0

    def start(self) -> None:
        if self.running:
            return
        self._queue = asyncio.Queue(maxsize=self.maxsize)
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"outbound-{i}")
            for i in range(self.worker_count)
        ]
        logger.debug("Outbound queue started with %d workers", self.worker_count)

    async def stop(self, *, drain: bool = True) -> None:
        if not self.running:
            return
        if drain:
            await self.join()
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        self._queue = None

    async def join(self) -> None:
        """Wait until every submitted job has finished (or given up)."""
        if self._queue is not None:
            await self._queue.join()

    async def submit(self, label: str, factory: JobFactory) -> None:
        """
        Enqueue a job. Blocks while the queue is full.

        ``factory`` must build a fresh awaitable on each call so that the job
        can be retried.
        """
        if self._queue is None:
            raise RuntimeError("Outbound queue is not running")
        self.stats.submitted += 1
        await self._queue.put(_Job(label, factory))

    async def _run(self, job: _Job) -> None:
        while True:
            job.attempt += 1
            try:
                await job.factory()
            except Exception as exc:  # noqa: BLE001 - any failure is retried
                if job.attempt >= self.max_attempts:
                    self.stats.failed += 1
                    logger.error(
                        "Outbound job %s failed after %d attempts: %s",
                        job.label,
                        job.attempt,
                        exc,
                    )
                    return
                self.stats.retried += 1
                logger.warning(
                    "Outbound job %s failed (attempt %d): %s", job.label, job.attempt, exc
                )
                await asyncio.sleep(self.retry_delay * job.attempt)
            else:
                self.stats.succeeded += 1
                logger.debug("Outbound job %s done", job.label)
                return

    async def _worker(self, index: int) -> None:
        assert self._queue is not None
        queue = self._queue
        while True:
            job = await queue.get()
            try:
                await self._run(job)
            finally:
                queue.task_done()
