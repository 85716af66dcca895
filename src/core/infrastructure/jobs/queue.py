"""Job queue port.

每个任务族拥有一个独立队列；队列只管理状态，不包含业务逻辑，payload 对队列不透明。
投递语义为 at-least-once：worker 在 ack 前崩溃时，recover() 会把在途任务放回队列。
"""

from collections.abc import Callable
from typing import Protocol

from src.core.infrastructure.jobs.models import Job, JobDelivery, QueueStats


class JobQueue(Protocol):
    """Durable FIFO-ish queue for one job family."""

    family: str

    async def push(self, job: Job, delay: float = 0.0) -> None:
        """Append a job; with delay > 0 it becomes visible once due."""
        ...

    async def pop(self, timeout: float) -> JobDelivery | None:
        """Block up to timeout seconds for the next due job."""
        ...

    async def ack(self, delivery: JobDelivery) -> None:
        """Mark a delivery as successfully handled."""
        ...

    async def retry(self, delivery: JobDelivery, job: Job, delay: float) -> None:
        """Replace the in-flight delivery with job, visible after delay."""
        ...

    async def fail(self, delivery: JobDelivery, job: Job) -> None:
        """Move the delivery to the failed (dead-letter) state."""
        ...

    async def recover(self) -> int:
        """Requeue deliveries left in flight by a crashed worker."""
        ...

    async def depth(self) -> int:
        """Number of jobs waiting (pending + delayed)."""
        ...

    async def stats(self) -> QueueStats: ...

    async def failed_jobs(self, limit: int = 100) -> list[Job]: ...


QueueFactory = Callable[[str], JobQueue]
