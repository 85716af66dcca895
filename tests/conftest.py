"""
pytest 配置和共享 fixtures。

测试分层：
- unit/: 单元测试（不依赖外部服务，Redis 使用 fakeredis）

使用方法：
    # 运行所有测试
    uv run pytest

    # 只运行单元测试
    uv run pytest tests/unit/
"""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import fakeredis
import pytest

from src.core.config import Settings
from src.core.infrastructure.cache import InMemoryCache, RedisCache
from src.core.infrastructure.jobs import NO_BACKOFF, JobDispatcher
from src.core.infrastructure.jobs.memory_queue import InMemoryJobQueue
from src.core.infrastructure.redis.client import RedisClient
from src.modules.magic_links.domain.entities import MagicLink, MagicLinkRecipient

# ============================================
# 配置 Fixtures
# ============================================


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def test_settings() -> Settings:
    """测试环境配置。"""
    return Settings(
        ENVIRONMENT="local",
        REDIS_URL="redis://localhost:6379/1",
        JOB_BACKEND="memory",
    )


# ============================================
# 时间控制 Fixtures
# ============================================


class FakeClock:
    """可手动推进的 UTC 时钟。"""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 6, 9, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeMonotonic:
    """可手动推进的单调时钟（用于缓存 TTL）。"""

    def __init__(self, start: float = 1000.0):
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def monotonic() -> FakeMonotonic:
    return FakeMonotonic()


# ============================================
# Redis / 缓存 Fixtures
# ============================================


@pytest.fixture
async def fake_redis() -> AsyncGenerator[RedisClient, None]:
    """基于 fakeredis 的 RedisClient。"""
    server = fakeredis.FakeServer()
    client = RedisClient(
        client=fakeredis.FakeAsyncRedis(server=server, decode_responses=True)
    )
    yield client
    await client.close()


@pytest.fixture
def redis_cache(fake_redis: RedisClient) -> RedisCache:
    return RedisCache(redis_client=fake_redis)


@pytest.fixture
def memory_cache(monotonic: FakeMonotonic) -> InMemoryCache:
    return InMemoryCache(clock=monotonic)


# ============================================
# 任务调度 Fixtures
# ============================================


@pytest.fixture
def job_dispatcher() -> JobDispatcher:
    """内存队列 + 无退避的调度器，便于逐个处理任务。"""
    return JobDispatcher(
        queue_factory=InMemoryJobQueue,
        default_max_attempts=3,
        default_backoff=NO_BACKOFF,
    )


# ============================================
# 领域对象 Fixtures
# ============================================


@pytest.fixture
def recipient() -> MagicLinkRecipient:
    return MagicLinkRecipient(
        subject_id="subject-123",
        email="rider@example.com",
        user_id="user-123",
    )


@pytest.fixture
def magic_link(clock: FakeClock) -> MagicLink:
    return MagicLink(
        id="a" * 64,
        subject_id="subject-123",
        issued_at=clock.now,
        expires_at=clock.now + timedelta(minutes=30),
        redirect_url="https://myeurotaxi.com/",
    )


# ============================================
# Mock 服务 Fixtures
# ============================================


@pytest.fixture
def mock_email_gateway() -> AsyncMock:
    """Mock 邮件网关，默认返回一个 message id。"""
    gateway = AsyncMock()
    gateway.send = AsyncMock(return_value=["<msg-1@smtp-relay.brevo.com>"])
    return gateway


@pytest.fixture
def mock_notifier() -> AsyncMock:
    notifier = AsyncMock()
    notifier.enqueue = AsyncMock(return_value="job-1")
    return notifier

