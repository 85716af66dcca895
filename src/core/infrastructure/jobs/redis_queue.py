"""Redis-backed job queue.

Key 布局（见 RedisKeys.job_queue）：
- pending: 待处理列表（LPUSH 入队，从右侧取出，保持 FIFO）
- active: 在途列表（BLMOVE 取出时同时写入，ack 后删除）
- delayed: 延迟重试有序集合（score 为到期时间戳）
- failed: 失败列表（按数量裁剪并设置过期）
- completed: 完成计数
"""

import time
from collections.abc import Awaitable
from typing import TypeVar

from loguru import logger
from redis.exceptions import RedisError

from src.core.config import settings
from src.core.domain.exceptions import JobQueueUnavailableError
from src.core.infrastructure.jobs.models import Job, JobDelivery, QueueStats
from src.core.infrastructure.redis.client import RedisClient, get_redis_client
from src.core.infrastructure.redis.keys import RedisKeys

T = TypeVar("T")


class RedisJobQueue:
    """JobQueue port on Redis lists and a sorted set."""

    def __init__(self, family: str, redis_client: RedisClient | None = None):
        self.family = family
        self.redis = redis_client or get_redis_client()
        self.pending_key = RedisKeys.job_queue(family, "pending")
        self.active_key = RedisKeys.job_queue(family, "active")
        self.delayed_key = RedisKeys.job_queue(family, "delayed")
        self.failed_key = RedisKeys.job_queue(family, "failed")
        self.completed_key = RedisKeys.job_queue(family, "completed")

    async def _call(self, awaitable: Awaitable[T]) -> T:
        try:
            return await awaitable
        except RedisError as e:
            raise JobQueueUnavailableError(self.family, str(e)) from e

    async def push(self, job: Job, delay: float = 0.0) -> None:
        raw = job.to_json()
        if delay > 0:
            await self._call(self.redis.zadd(self.delayed_key, {raw: time.time() + delay}))
        else:
            await self._call(self.redis.lpush(self.pending_key, raw))

    async def _promote_due(self) -> None:
        due = await self.redis.zrangebyscore(self.delayed_key, "-inf", time.time())
        for raw in due:
            # 只有成功从 delayed 移除的一方负责放回 pending
            if await self.redis.zrem(self.delayed_key, raw):
                await self.redis.lpush(self.pending_key, raw)

    async def pop(self, timeout: float) -> JobDelivery | None:
        await self._call(self._promote_due())
        if timeout > 0:
            raw = await self._call(
                self.redis.blmove(self.pending_key, self.active_key, timeout)
            )
        else:
            raw = await self._call(self.redis.lmove(self.pending_key, self.active_key))
        if raw is None:
            return None

        try:
            job = Job.from_json(raw)
        except ValueError:
            logger.error(f"Dropping undecodable job from {self.pending_key}")
            await self._call(self.redis.lrem(self.active_key, 1, raw))
            return None
        return JobDelivery(job=job, receipt=raw)

    async def ack(self, delivery: JobDelivery) -> None:
        async with self.redis.pipeline() as pipe:
            pipe.lrem(self.active_key, 1, delivery.receipt)
            pipe.incr(self.completed_key)
            await self._call(pipe.execute())

    async def retry(self, delivery: JobDelivery, job: Job, delay: float) -> None:
        raw = job.to_json()
        async with self.redis.pipeline() as pipe:
            pipe.lrem(self.active_key, 1, delivery.receipt)
            if delay > 0:
                pipe.zadd(self.delayed_key, {raw: time.time() + delay})
            else:
                pipe.lpush(self.pending_key, raw)
            await self._call(pipe.execute())

    async def fail(self, delivery: JobDelivery, job: Job) -> None:
        async with self.redis.pipeline() as pipe:
            pipe.lrem(self.active_key, 1, delivery.receipt)
            pipe.lpush(self.failed_key, job.to_json())
            pipe.ltrim(self.failed_key, 0, settings.JOB_FAILED_RETENTION_COUNT - 1)
            pipe.expire(self.failed_key, settings.JOB_FAILED_RETENTION_SEC)
            await self._call(pipe.execute())

    async def recover(self) -> int:
        orphans = await self._call(self.redis.lrange(self.active_key, 0, -1))
        for raw in orphans:
            async with self.redis.pipeline() as pipe:
                pipe.lrem(self.active_key, 1, raw)
                pipe.rpush(self.pending_key, raw)
                await self._call(pipe.execute())
        if orphans:
            logger.warning(
                f"Recovered {len(orphans)} in-flight job(s) for family {self.family}"
            )
        return len(orphans)

    async def depth(self) -> int:
        pending = await self._call(self.redis.llen(self.pending_key))
        delayed = await self._call(self.redis.zcard(self.delayed_key))
        return pending + delayed

    async def stats(self) -> QueueStats:
        completed = await self._call(self.redis.get(self.completed_key))
        return QueueStats(
            pending=await self._call(self.redis.llen(self.pending_key)),
            delayed=await self._call(self.redis.zcard(self.delayed_key)),
            active=await self._call(self.redis.llen(self.active_key)),
            failed=await self._call(self.redis.llen(self.failed_key)),
            completed=int(completed) if completed else 0,
        )

    async def failed_jobs(self, limit: int = 100) -> list[Job]:
        raws = await self._call(self.redis.lrange(self.failed_key, 0, limit - 1))
        return [Job.from_json(raw) for raw in raws]
