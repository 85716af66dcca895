"""Job family names shared across layers."""

from enum import StrEnum


class JobFamilies(StrEnum):
    """Registered job families (one worker per family)."""

    NOTIFICATIONS = "notifications"

    @classmethod
    def all_families(cls) -> list[str]:
        return [f.value for f in cls]
