"""Background job dispatch."""

from src.core.infrastructure.jobs.dispatcher import JobDispatcher, get_job_dispatcher
from src.core.infrastructure.jobs.models import Job, JobDelivery, JobOutcome, QueueStats
from src.core.infrastructure.jobs.retry import NO_BACKOFF, BackoffPolicy
from src.core.infrastructure.jobs.worker import JobHandler, JobWorker

__all__ = [
    "NO_BACKOFF",
    "BackoffPolicy",
    "Job",
    "JobDelivery",
    "JobDispatcher",
    "JobHandler",
    "JobOutcome",
    "JobWorker",
    "QueueStats",
    "get_job_dispatcher",
]
