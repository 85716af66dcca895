"""Per-family job worker loop."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Collection
from datetime import UTC, datetime

from loguru import logger

from src.core.config import settings
from src.core.domain.exceptions import JobQueueUnavailableError
from src.core.infrastructure.jobs.exceptions import PermanentJobError
from src.core.infrastructure.jobs.models import Job, JobDelivery, JobOutcome
from src.core.infrastructure.jobs.queue import JobQueue
from src.core.infrastructure.jobs.retry import BackoffPolicy
from src.core.infrastructure.logging import BusinessEvents

JobHandler = Callable[[Job], Awaitable[None]]

# 队列不可用时的暂停时间（秒）
QUEUE_OUTAGE_PAUSE_SEC = 5.0


class JobWorker:
    """The single consumer of one family's queue.

    Handler 异常按任务捕获，不会中断循环：
    - 失败次数 < max_attempts: 按退避策略重新入队
    - 否则: 移入失败状态，记录 job_failed 事件，不再自动重试
    """

    def __init__(
        self,
        family: str,
        handler: JobHandler,
        queue: JobQueue,
        names: Collection[str],
        max_attempts: int,
        backoff: BackoffPolicy,
        handler_timeout: float | None = None,
        poll_timeout: float | None = None,
    ):
        self.family = family
        self.handler = handler
        self.queue = queue
        self.names = frozenset(str(name) for name in names)
        self.max_attempts = max_attempts
        self.backoff = backoff
        self.handler_timeout = handler_timeout or settings.JOB_HANDLER_TIMEOUT_SEC
        self.poll_timeout = (
            settings.JOB_POLL_TIMEOUT_SEC if poll_timeout is None else poll_timeout
        )
        self._stopping = asyncio.Event()

    @property
    def is_stopping(self) -> bool:
        return self._stopping.is_set()

    def stop(self) -> None:
        self._stopping.set()

    async def run(self) -> None:
        """Consume the queue until stop() is called."""
        logger.info(f"Starting worker for job family {self.family}")
        recovered = await self.queue.recover()
        if recovered:
            logger.info(f"Requeued {recovered} in-flight job(s) for {self.family}")

        while not self._stopping.is_set():
            try:
                await self.process_next(timeout=self.poll_timeout)
            except JobQueueUnavailableError as e:
                logger.warning(f"Queue unavailable for {self.family}: {e}")
                try:
                    await asyncio.wait_for(
                        self._stopping.wait(), timeout=QUEUE_OUTAGE_PAUSE_SEC
                    )
                except TimeoutError:
                    pass

        logger.info(f"Worker for job family {self.family} stopped")

    async def process_next(self, timeout: float = 0.0) -> JobOutcome | None:
        """Handle at most one job. Returns None when nothing was due."""
        delivery = await self.queue.pop(timeout)
        if delivery is None:
            return None
        return await self._process(delivery)

    async def _process(self, delivery: JobDelivery) -> JobOutcome:
        job = delivery.job
        if job.name not in self.names:
            error = f"Unknown job name '{job.name}' for family {self.family}"
            logger.error(error)
            return await self._fail(delivery, job.with_failure(error))

        try:
            await asyncio.wait_for(self.handler(job), timeout=self.handler_timeout)
        except PermanentJobError as e:
            logger.error(f"Job {job.id} ({job.name}) failed permanently: {e}")
            return await self._fail(delivery, job.with_failure(str(e)))
        except Exception as e:
            error = str(e) or type(e).__name__
            logger.error(f"Error in job handler for {job.name}: {error}")
            failed = job.with_failure(error)
            if failed.attempts_left > 0:
                return await self._retry(delivery, failed)
            return await self._fail(delivery, failed)

        await self.queue.ack(delivery)
        logger.info(f"Job {job.id} ({job.name}) completed successfully")
        BusinessEvents.job_completed(
            family=self.family,
            name=job.name,
            job_id=job.id,
            attempt=job.attempt + 1,
        )
        return JobOutcome.COMPLETED

    async def _retry(self, delivery: JobDelivery, job: Job) -> JobOutcome:
        delay = self.backoff.delay(job.attempt)
        await self.queue.retry(delivery, job, delay)
        BusinessEvents.job_retry_scheduled(
            family=self.family,
            name=job.name,
            job_id=job.id,
            attempt=job.attempt,
            delay_sec=delay,
            error=job.last_error or "",
        )
        return JobOutcome.RETRYING

    async def _fail(self, delivery: JobDelivery, job: Job) -> JobOutcome:
        job = job.model_copy(update={"failed_at": datetime.now(UTC)})
        await self.queue.fail(delivery, job)
        BusinessEvents.job_failed(
            family=self.family,
            name=job.name,
            job_id=job.id,
            attempt=job.attempt,
            error=job.last_error or "",
        )
        return JobOutcome.FAILED
