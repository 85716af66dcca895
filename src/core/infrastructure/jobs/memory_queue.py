"""In-process job queue for local runs and tests."""

import asyncio
import heapq
import itertools
import time
from collections import deque
from collections.abc import Callable

from src.core.config import settings
from src.core.infrastructure.jobs.models import Job, JobDelivery, QueueStats


class InMemoryJobQueue:
    """asyncio implementation of the JobQueue port.

    任务以 JSON 保存，入队后生产方对 payload 的修改不会影响队列中的任务。
    """

    def __init__(
        self,
        family: str,
        clock: Callable[[], float] = time.monotonic,
        failed_retention: int | None = None,
    ):
        self.family = family
        self._clock = clock
        self._pending: deque[str] = deque()
        self._delayed: list[tuple[float, int, str]] = []
        self._active: dict[str, str] = {}
        self._failed: deque[str] = deque(
            maxlen=failed_retention or settings.JOB_FAILED_RETENTION_COUNT
        )
        self._completed = 0
        self._seq = itertools.count()
        self._wakeup = asyncio.Event()

    def _promote_due(self) -> None:
        now = self._clock()
        while self._delayed and self._delayed[0][0] <= now:
            _, _, raw = heapq.heappop(self._delayed)
            self._pending.append(raw)

    async def push(self, job: Job, delay: float = 0.0) -> None:
        raw = job.to_json()
        if delay > 0:
            heapq.heappush(self._delayed, (self._clock() + delay, next(self._seq), raw))
        else:
            self._pending.append(raw)
        self._wakeup.set()

    async def pop(self, timeout: float) -> JobDelivery | None:
        deadline = self._clock() + max(timeout, 0.0)
        while True:
            self._promote_due()
            if self._pending:
                raw = self._pending.popleft()
                job = Job.from_json(raw)
                receipt = f"{job.id}:{job.attempt}:{next(self._seq)}"
                self._active[receipt] = raw
                return JobDelivery(job=job, receipt=receipt)

            now = self._clock()
            remaining = deadline - now
            if remaining <= 0:
                return None
            wait = remaining
            if self._delayed:
                wait = min(wait, max(self._delayed[0][0] - now, 0.0))

            self._wakeup.clear()
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=wait)
            except TimeoutError:
                pass

    async def ack(self, delivery: JobDelivery) -> None:
        self._active.pop(delivery.receipt, None)
        self._completed += 1

    async def retry(self, delivery: JobDelivery, job: Job, delay: float) -> None:
        self._active.pop(delivery.receipt, None)
        await self.push(job, delay)

    async def fail(self, delivery: JobDelivery, job: Job) -> None:
        self._active.pop(delivery.receipt, None)
        self._failed.appendleft(job.to_json())

    async def recover(self) -> int:
        orphans = list(self._active.values())
        self._active.clear()
        self._pending.extendleft(reversed(orphans))
        if orphans:
            self._wakeup.set()
        return len(orphans)

    async def depth(self) -> int:
        return len(self._pending) + len(self._delayed)

    async def stats(self) -> QueueStats:
        return QueueStats(
            pending=len(self._pending),
            delayed=len(self._delayed),
            active=len(self._active),
            failed=len(self._failed),
            completed=self._completed,
        )

    async def failed_jobs(self, limit: int = 100) -> list[Job]:
        return [Job.from_json(raw) for raw in list(self._failed)[:limit]]
