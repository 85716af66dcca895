"""Expiring key-value cache port."""

from typing import Protocol


class Cache(Protocol):
    """Namespaced cache with native expiry.

    实现方负责 key 前缀与过期回收；pop 必须是原子的"读取并删除"。
    """

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store value under key, reclaimed by the backend after ttl_seconds."""
        ...

    async def add(self, key: str, value: str, ttl_seconds: int) -> bool:
        """Store value only if key is absent. Returns True when stored."""
        ...

    async def get(self, key: str) -> str | None: ...

    async def pop(self, key: str) -> str | None:
        """Atomically read and delete key."""
        ...

    async def delete(self, key: str) -> bool: ...
