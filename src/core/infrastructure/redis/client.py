"""Redis 客户端封装。

缓存（magic link、幂等键）和任务队列共用同一个连接池。
只暴露业务实际用到的命令；需要原子性的组合操作走 pipeline()。
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import redis.asyncio as aioredis
from loguru import logger
from redis.exceptions import RedisError

from src.core.config import settings
from src.core.infrastructure.health import HealthStatus, RedisHealthResult

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from redis.asyncio.client import Pipeline


class RedisUnavailableError(RuntimeError):
    """Redis 无法连接或在超时内未响应。"""


class RedisClient:
    """Thin async wrapper around a redis.asyncio connection pool."""

    def __init__(self, url: str | None = None, client: Redis | None = None):
        # client 参数用于注入 fakeredis
        self._url = url or settings.REDIS_URL
        self._client: Redis | None = client

    @property
    def client(self) -> Redis:
        if self._client is None:
            self._client = aioredis.from_url(
                self._url,
                encoding="utf-8",
                decode_responses=True,
                socket_timeout=settings.REDIS_SOCKET_TIMEOUT_SEC,
                socket_connect_timeout=settings.REDIS_CONNECT_TIMEOUT_SEC,
                retry_on_timeout=True,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except (RedisError, OSError) as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    async def require_available(self, timeout: float = 5.0) -> None:
        """Raise RedisUnavailableError unless PING answers within timeout."""
        try:
            answered = await asyncio.wait_for(self.client.ping(), timeout=timeout)
        except TimeoutError as e:
            raise RedisUnavailableError(f"No PING reply within {timeout}s") from e
        except (RedisError, OSError) as e:
            raise RedisUnavailableError(f"PING failed: {e}") from e
        if not answered:
            raise RedisUnavailableError("PING returned a falsy reply")

    async def health_check(self) -> RedisHealthResult:
        if not await self.ping():
            return RedisHealthResult(status=HealthStatus.ERROR, connected=False)
        try:
            server = await self.client.info("server")
        except RedisError as e:
            return RedisHealthResult(
                status=HealthStatus.ERROR, connected=True, error=str(e)
            )
        return RedisHealthResult(
            status=HealthStatus.OK,
            connected=True,
            version=server.get("redis_version"),
        )

    def pipeline(self, transaction: bool = True) -> Pipeline:
        """MULTI/EXEC pipeline by default."""
        return self.client.pipeline(transaction=transaction)

    # ---- strings ----

    async def get(self, key: str) -> str | None:
        return await self.client.get(key)

    async def getdel(self, key: str) -> str | None:
        """Atomic read-and-delete (Redis >= 6.2)."""
        return await self.client.getdel(key)

    async def set(
        self,
        key: str,
        value: str,
        ex: int | None = None,
        nx: bool = False,
    ) -> bool:
        """SET with optional TTL (seconds). With nx=True, False means the key existed."""
        return bool(await self.client.set(key, value, ex=ex, nx=nx))

    async def delete(self, *keys: str) -> int:
        return await self.client.delete(*keys)

    # ---- lists ----
    # 队列约定：LPUSH 入队，从右端 (RIGHT) 取出

    async def lpush(self, key: str, *values: str) -> int:
        return await self.client.lpush(key, *values)

    async def lmove(self, source: str, destination: str) -> str | None:
        return await self.client.lmove(source, destination, "RIGHT", "LEFT")

    async def blmove(self, source: str, destination: str, timeout: float) -> str | None:
        return await self.client.blmove(source, destination, timeout, "RIGHT", "LEFT")

    async def lrem(self, key: str, count: int, value: str) -> int:
        return await self.client.lrem(key, count, value)

    async def lrange(self, key: str, start: int, end: int) -> list[str]:
        return await self.client.lrange(key, start, end)

    async def llen(self, key: str) -> int:
        return await self.client.llen(key)

    # ---- sorted sets ----

    async def zadd(self, key: str, mapping: dict[str, float]) -> int:
        return await self.client.zadd(key, mapping)

    async def zrangebyscore(
        self, key: str, min_score: float | str, max_score: float | str
    ) -> list[str]:
        return await self.client.zrangebyscore(key, min_score, max_score)

    async def zrem(self, key: str, *members: str) -> int:
        return await self.client.zrem(key, *members)

    async def zcard(self, key: str) -> int:
        return await self.client.zcard(key)


# 进程级共享实例
redis_client = RedisClient()


def get_redis_client() -> RedisClient:
    return redis_client
