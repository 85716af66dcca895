"""Redis-backed implementation of the cache port."""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from redis.exceptions import RedisError

from src.core.config import settings
from src.core.domain.exceptions import CacheUnavailableError
from src.core.infrastructure.redis.client import RedisClient, get_redis_client

T = TypeVar("T")


class RedisCache:
    """Expiring cache on top of RedisClient.

    每个操作都带超时；Redis 异常统一转换为 CacheUnavailableError。
    """

    def __init__(
        self,
        redis_client: RedisClient | None = None,
        timeout: float | None = None,
    ):
        self.redis = redis_client or get_redis_client()
        self.timeout = timeout or settings.CACHE_OPERATION_TIMEOUT_SEC

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except TimeoutError as e:
            raise CacheUnavailableError(operation, "timeout") from e
        except RedisError as e:
            raise CacheUnavailableError(operation, str(e)) from e

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._call("set", self.redis.set(key, value, ex=ttl_seconds))

    async def add(self, key: str, value: str, ttl_seconds: int) -> bool:
        return await self._call(
            "add", self.redis.set(key, value, ex=ttl_seconds, nx=True)
        )

    async def get(self, key: str) -> str | None:
        return await self._call("get", self.redis.get(key))

    async def pop(self, key: str) -> str | None:
        return await self._call("pop", self.redis.getdel(key))

    async def delete(self, key: str) -> bool:
        return await self._call("delete", self.redis.delete(key)) > 0
