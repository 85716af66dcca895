"""Job value objects."""

from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class JobOutcome(StrEnum):
    """Result of processing a single delivery."""

    COMPLETED = "completed"
    RETRYING = "retrying"
    FAILED = "failed"


class Job(BaseModel):
    """A unit of deferred work belonging to a family.

    attempt 表示已失败的次数；只有调度器会通过 model_copy 生成新的 attempt。
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid4().hex, description="任务ID")
    family: str = Field(..., description="任务族")
    name: str = Field(..., description="任务名称")
    payload: dict[str, Any] = Field(default_factory=dict, description="任务数据")
    attempt: int = Field(default=0, ge=0, description="已失败次数")
    max_attempts: int = Field(..., ge=1, description="最大尝试次数")
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    last_error: str | None = Field(default=None, description="最近一次错误")
    failed_at: datetime | None = Field(default=None, description="进入失败状态的时间")

    @property
    def attempts_left(self) -> int:
        return max(self.max_attempts - self.attempt, 0)

    def with_failure(self, error: str) -> "Job":
        """Return a copy with the failure counted."""
        return self.model_copy(
            update={"attempt": self.attempt + 1, "last_error": error}
        )

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, raw: str) -> "Job":
        return cls.model_validate_json(raw)


@dataclass(frozen=True)
class JobDelivery:
    """A job handed to a worker, with the receipt needed to ack it."""

    job: Job
    receipt: str


@dataclass(frozen=True)
class QueueStats:
    """Snapshot of a family's queue."""

    pending: int
    delayed: int
    active: int
    failed: int
    completed: int

    def to_dict(self) -> dict[str, int]:
        return asdict(self)
