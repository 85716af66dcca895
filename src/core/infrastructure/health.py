"""Health check result types."""

from enum import StrEnum

from pydantic import BaseModel


class HealthStatus(StrEnum):
    OK = "ok"
    ERROR = "error"


class RedisHealthResult(BaseModel):
    status: HealthStatus
    connected: bool
    version: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, str | bool | None]:
        return self.model_dump(mode="json")
