"""Cache port implementations."""

from src.core.infrastructure.cache.memory import InMemoryCache
from src.core.infrastructure.cache.redis_cache import RedisCache

__all__ = ["InMemoryCache", "RedisCache"]
