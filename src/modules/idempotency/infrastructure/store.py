"""Short-TTL claim store for idempotency keys."""

from loguru import logger

from src.core.config import settings
from src.core.domain.exceptions import CacheUnavailableError
from src.core.domain.ports.cache import Cache
from src.core.infrastructure.redis.keys import RedisKeys


class IdempotencyStore:
    """First claim of (scope, key) wins until the TTL runs out."""

    def __init__(self, cache: Cache, ttl_seconds: int | None = None):
        self.cache = cache
        self.ttl_seconds = ttl_seconds or settings.IDEMPOTENCY_TTL_SEC

    async def claim(self, scope: str, key: str) -> bool:
        claimed = await self.cache.add(
            RedisKeys.idempotency(scope, key), "1", self.ttl_seconds
        )
        if not claimed:
            logger.info(f"Duplicate request ignored: scope={scope} key={key}")
        return claimed

    async def release(self, scope: str, key: str) -> None:
        try:
            await self.cache.delete(RedisKeys.idempotency(scope, key))
        except CacheUnavailableError as e:
            # key 会在 TTL 后自然过期
            logger.warning(f"Failed to release idempotency key {scope}/{key}: {e}")
