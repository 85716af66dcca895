"""In-process cache for local runs and tests."""

import asyncio
import time
from collections.abc import Callable


class InMemoryCache:
    """Expiring dict guarded by an asyncio lock.

    过期键在访问时惰性回收，与 Redis 的被动过期行为一致。
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}
        self._lock = asyncio.Lock()

    def _live(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, deadline = entry
        if self._clock() >= deadline:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        async with self._lock:
            self._entries[key] = (value, self._clock() + ttl_seconds)

    async def add(self, key: str, value: str, ttl_seconds: int) -> bool:
        async with self._lock:
            if self._live(key) is not None:
                return False
            self._entries[key] = (value, self._clock() + ttl_seconds)
            return True

    async def get(self, key: str) -> str | None:
        async with self._lock:
            return self._live(key)

    async def pop(self, key: str) -> str | None:
        async with self._lock:
            value = self._live(key)
            self._entries.pop(key, None)
            return value

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._entries.pop(key, None) is not None

    def __len__(self) -> int:
        return len(self._entries)
