"""Job dispatcher: a registry of job families and their workers.

每个任务族只有一个 worker 实例（首次注册生效），避免多个消费者竞争同一队列。
入队是 fire-and-forget：生产方不会等待任务执行。
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Collection, Mapping
from typing import Any

from loguru import logger

from src.core.config import settings
from src.core.infrastructure.jobs.exceptions import (
    JobDispatcherClosedError,
    UnknownJobFamilyError,
    UnknownJobNameError,
)
from src.core.infrastructure.jobs.models import Job, QueueStats
from src.core.infrastructure.jobs.queue import QueueFactory
from src.core.infrastructure.jobs.retry import BackoffPolicy
from src.core.infrastructure.jobs.worker import JobHandler, JobWorker
from src.core.infrastructure.logging import BusinessEvents


def _default_queue_factory(family: str):
    if settings.JOB_BACKEND == "memory":
        from src.core.infrastructure.jobs.memory_queue import InMemoryJobQueue

        return InMemoryJobQueue(family)

    from src.core.infrastructure.jobs.redis_queue import RedisJobQueue

    return RedisJobQueue(family)


class JobDispatcher:
    """Typed, named registry of asynchronous job families."""

    def __init__(
        self,
        queue_factory: QueueFactory | None = None,
        default_max_attempts: int | None = None,
        default_backoff: BackoffPolicy | None = None,
    ):
        self._queue_factory = queue_factory or _default_queue_factory
        self.default_max_attempts = default_max_attempts or settings.JOB_MAX_ATTEMPTS
        self.default_backoff = default_backoff or BackoffPolicy.from_settings()
        self._workers: dict[str, JobWorker] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._lock = threading.Lock()
        self._closed = False

    def register(
        self,
        family: str,
        handler: JobHandler,
        *,
        names: Collection[str],
        max_attempts: int | None = None,
        backoff: BackoffPolicy | None = None,
    ) -> JobWorker:
        """Bind a family to its handler.

        重复注册同一 family 返回已存在的 worker，不会创建第二个消费者。
        """
        with self._lock:
            existing = self._workers.get(family)
            if existing is not None:
                logger.debug(f"Job family {family} already registered")
                return existing

            if not names:
                raise ValueError(f"Job family '{family}' must declare its job names")

            logger.info(f"Initializing {family} queue and worker...")
            worker = JobWorker(
                family=family,
                handler=handler,
                queue=self._queue_factory(family),
                names=names,
                max_attempts=max_attempts or self.default_max_attempts,
                backoff=backoff or self.default_backoff,
            )
            self._workers[family] = worker
            return worker

    def get_worker(self, family: str) -> JobWorker:
        worker = self._workers.get(family)
        if worker is None:
            raise UnknownJobFamilyError(family)
        return worker

    def families(self) -> list[str]:
        return sorted(self._workers)

    async def enqueue(
        self,
        family: str,
        name: str,
        payload: Mapping[str, Any],
        *,
        max_attempts: int | None = None,
        delay: float = 0.0,
    ) -> Job:
        """Append a job to the family's queue and return immediately."""
        if self._closed:
            logger.warning(f"Cannot add job {name}: dispatcher is shutting down")
            raise JobDispatcherClosedError(f"Cannot enqueue '{name}': dispatcher closed")

        worker = self.get_worker(family)
        if str(name) not in worker.names:
            raise UnknownJobNameError(family, str(name))

        job = Job(
            family=family,
            name=str(name),
            payload=dict(payload),
            max_attempts=max_attempts or worker.max_attempts,
        )
        await worker.queue.push(job, delay)

        BusinessEvents.job_enqueued(family=family, name=job.name, job_id=job.id)
        depth = await worker.queue.depth()
        if depth > settings.JOB_QUEUE_DEPTH_WARNING:
            logger.warning(
                f"Queue depth for {family} is {depth} "
                f"(warning threshold {settings.JOB_QUEUE_DEPTH_WARNING})"
            )
        return job

    def start(self) -> None:
        """Spawn one long-lived task per registered family."""
        for family, worker in self._workers.items():
            task = self._tasks.get(family)
            if task is not None and not task.done():
                continue
            self._tasks[family] = asyncio.create_task(
                worker.run(), name=f"job-worker:{family}"
            )
        logger.info(f"Job workers started: {', '.join(self.families())}")

    async def shutdown(self, timeout: float = 10.0) -> None:
        """Stop accepting jobs, then let workers finish their current job."""
        if self._closed:
            logger.warning("Already shutting down")
            return
        self._closed = True
        logger.info("Gracefully closing workers and queues...")

        for worker in self._workers.values():
            worker.stop()

        tasks = [task for task in self._tasks.values() if not task.done()]
        if tasks:
            done, pending = await asyncio.wait(tasks, timeout=timeout)
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            for task in done:
                if not task.cancelled() and task.exception() is not None:
                    logger.error(
                        f"Worker {task.get_name()} exited with error: {task.exception()}"
                    )
        self._tasks.clear()
        logger.info("Workers and queues closed")

    async def stats(self, family: str) -> QueueStats:
        return await self.get_worker(family).queue.stats()

    async def failed_jobs(self, family: str, limit: int = 100) -> list[Job]:
        return await self.get_worker(family).queue.failed_jobs(limit)


_dispatcher: JobDispatcher | None = None
_dispatcher_lock = threading.Lock()


def get_job_dispatcher() -> JobDispatcher:
    """获取进程级 JobDispatcher（延迟初始化）。"""
    global _dispatcher
    if _dispatcher is None:
        with _dispatcher_lock:
            if _dispatcher is None:
                _dispatcher = JobDispatcher()
    return _dispatcher
