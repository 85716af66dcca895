"""Magic link token store 单元测试。

测试覆盖：
- 签发：写入缓存、入队通知、返回过期时间
- 兑换：单次有效、过期、格式错误、记录损坏
- 队列不可用时的投递缺口
"""

import json
from unittest.mock import AsyncMock

import pytest
from structlog.testing import capture_logs

from src.core.domain.exceptions import CacheUnavailableError, JobQueueUnavailableError
from src.core.infrastructure.cache import InMemoryCache
from src.core.infrastructure.jobs.exceptions import UnknownJobFamilyError
from src.core.infrastructure.redis.keys import RedisKeys
from src.modules.magic_links.application.token_store import (
    MagicLinkStore,
    generate_token,
)
from src.modules.magic_links.domain.entities import MagicLinkRecipient

pytestmark = pytest.mark.anyio


@pytest.fixture
def store(memory_cache, mock_notifier, clock) -> MagicLinkStore:
    return MagicLinkStore(
        cache=memory_cache,
        notifier=mock_notifier,
        ttl_seconds=30 * 60,
        clock=clock,
    )


def _recipient(subject_id: str = "u1") -> MagicLinkRecipient:
    return MagicLinkRecipient(subject_id=subject_id, email="u1@example.com")


class TestGenerateToken:
    def test_token_is_64_hex_chars(self):
        token = generate_token()
        assert len(token) == 64
        int(token, 16)

    def test_tokens_are_unique(self):
        assert len({generate_token() for _ in range(50)}) == 50


class TestIssue:
    async def test_issue_stores_link_with_ttl(self, store, memory_cache, clock):
        link = await store.issue(_recipient(), "https://app.example/")

        assert link.subject_id == "u1"
        assert link.issued_at == clock.now
        assert (link.expires_at - link.issued_at).total_seconds() == 30 * 60

        raw = await memory_cache.get(RedisKeys.magic_link(link.id))
        assert json.loads(raw)["subject_id"] == "u1"

    async def test_issue_enqueues_notification(self, store, mock_notifier):
        recipient = _recipient()
        link = await store.issue(recipient, "https://app.example/")

        mock_notifier.enqueue.assert_awaited_once_with(link, recipient)

    async def test_cache_failure_does_not_enqueue(self, mock_notifier, clock):
        cache = AsyncMock()
        cache.set = AsyncMock(side_effect=CacheUnavailableError("set", "timeout"))
        store = MagicLinkStore(cache=cache, notifier=mock_notifier, clock=clock)

        with pytest.raises(CacheUnavailableError):
            await store.issue(_recipient(), "https://app.example/")

        mock_notifier.enqueue.assert_not_awaited()

    async def test_queue_failure_is_surfaced_as_service_error(
        self, memory_cache, mock_notifier, clock
    ):
        mock_notifier.enqueue = AsyncMock(
            side_effect=JobQueueUnavailableError("notifications", "connection refused")
        )
        store = MagicLinkStore(cache=memory_cache, notifier=mock_notifier, clock=clock)

        with pytest.raises(JobQueueUnavailableError):
            await store.issue(_recipient(), "https://app.example/")

        # 链接已写入，只是没有投递
        assert len(memory_cache) == 1

    async def test_job_error_is_wrapped(self, memory_cache, mock_notifier, clock):
        mock_notifier.enqueue = AsyncMock(
            side_effect=UnknownJobFamilyError("notifications")
        )
        store = MagicLinkStore(cache=memory_cache, notifier=mock_notifier, clock=clock)

        with pytest.raises(JobQueueUnavailableError) as exc_info:
            await store.issue(_recipient(), "https://app.example/")

        assert isinstance(exc_info.value.__cause__, UnknownJobFamilyError)


class TestRedeem:
    async def test_single_use(self, store):
        link = await store.issue(_recipient(), "https://app.example/")

        first = await store.redeem(link.id)
        second = await store.redeem(link.id)

        assert first is not None
        assert first.subject_id == "u1"
        assert second is None

    async def test_expired_link_is_rejected_before_cache_reclaims_it(
        self, store, memory_cache, clock
    ):
        link = await store.issue(_recipient(), "https://app.example/")

        # 只推进业务时钟，缓存中的记录仍然存在
        clock.advance(minutes=31)

        assert await store.redeem(link.id) is None
        assert await memory_cache.get(RedisKeys.magic_link(link.id)) is None

    async def test_expired_link_reclaimed_by_cache(self, store, monotonic, clock):
        link = await store.issue(_recipient(), "https://app.example/")

        monotonic.advance(31 * 60)
        clock.advance(minutes=31)

        assert await store.redeem(link.id) is None

    async def test_redeem_at_exact_expiry_is_rejected(self, store, clock):
        link = await store.issue(_recipient(), "https://app.example/")
        clock.now = link.expires_at

        assert await store.redeem(link.id) is None

    @pytest.mark.parametrize(
        "token_id", ["", "abc", "A" * 64, "g" * 64, "a" * 65, "a" * 64 + "\n"]
    )
    async def test_malformed_token_is_not_found(self, store, token_id):
        assert await store.redeem(token_id) is None

    async def test_unknown_token_is_not_found(self, store):
        assert await store.redeem(generate_token()) is None

    async def test_corrupt_record_is_discarded(self, store, memory_cache):
        token_id = generate_token()
        await memory_cache.set(RedisKeys.magic_link(token_id), "{not json", 60)

        assert await store.redeem(token_id) is None
        assert len(memory_cache) == 0

    async def test_redeem_with_redis_cache(self, redis_cache, mock_notifier, clock):
        store = MagicLinkStore(cache=redis_cache, notifier=mock_notifier, clock=clock)
        link = await store.issue(_recipient(), "https://app.example/")

        assert (await store.redeem(link.id)).id == link.id
        assert await store.redeem(link.id) is None


class TestScenario:
    async def test_issue_redeem_then_expire(self, mock_notifier, clock, monotonic):
        store = MagicLinkStore(
            cache=InMemoryCache(clock=monotonic),
            notifier=mock_notifier,
            ttl_seconds=30 * 60,
            clock=clock,
        )

        first = await store.issue(_recipient("u1"), "https://app.example/")
        redeemed = await store.redeem(first.id)
        assert redeemed is not None
        assert redeemed.subject_id == "u1"
        assert await store.redeem(first.id) is None

        second = await store.issue(_recipient("u1"), "https://app.example/")
        clock.advance(minutes=31)
        assert await store.redeem(second.id) is None


class TestBusinessEvents:
    async def test_events_never_contain_the_token(self, store):
        with capture_logs() as logs:
            link = await store.issue(_recipient(), "https://app.example/")
            await store.redeem(link.id)

        assert [entry["event"] for entry in logs] == [
            "magic_link_issued",
            "magic_link_email_enqueued",
            "magic_link_redeemed",
        ]
        assert all(link.id not in str(entry) for entry in logs)
        assert logs[0]["token_hint"] == link.hint
