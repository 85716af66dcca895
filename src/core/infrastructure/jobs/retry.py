"""Job retry helpers."""

from __future__ import annotations

from dataclasses import dataclass

from src.core.config import settings


@dataclass(frozen=True)
class BackoffPolicy:
    """Exponential backoff, capped.

    delay(attempt) = min(base_delay * factor ** (attempt - 1), max_delay)
    """

    base_delay: float = 5.0
    factor: float = 2.0
    max_delay: float = 300.0

    def __post_init__(self) -> None:
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("Backoff delays must be non-negative")
        if self.factor < 1:
            raise ValueError("Backoff factor must be >= 1")

    def delay(self, attempt: int) -> float:
        """Delay before re-running a job that has failed `attempt` times."""
        if attempt <= 0:
            return 0.0
        return min(self.base_delay * self.factor ** (attempt - 1), self.max_delay)

    @classmethod
    def from_settings(cls) -> BackoffPolicy:
        return cls(
            base_delay=settings.JOB_BACKOFF_BASE_SEC,
            factor=settings.JOB_BACKOFF_FACTOR,
            max_delay=settings.JOB_BACKOFF_MAX_SEC,
        )


NO_BACKOFF = BackoffPolicy(base_delay=0.0, factor=1.0, max_delay=0.0)
