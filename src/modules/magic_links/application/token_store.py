"""Magic link token store.

签发：写入缓存（带 TTL）成功后才把通知任务入队，请求路径不等待投递。
兑换：原子地读取并删除，缺失 / 已用 / 过期统一返回 None，不区分原因。
"""

import asyncio
import re
import secrets
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from loguru import logger

from src.core.config import settings
from src.core.domain.exceptions import JobQueueUnavailableError
from src.core.domain.ports.cache import Cache
from src.core.domain.queues import JobFamilies
from src.core.infrastructure.jobs.exceptions import JobError
from src.core.infrastructure.logging import BusinessEvents
from src.core.infrastructure.redis.keys import RedisKeys
from src.modules.magic_links.domain.entities import MagicLink, MagicLinkRecipient
from src.modules.magic_links.domain.ports import MagicLinkNotifier

TOKEN_BYTES = 32
_TOKEN_PATTERN = re.compile(r"[0-9a-f]{64}")


def generate_token() -> str:
    """32 random bytes, hex encoded (URL safe)."""
    return secrets.token_hex(TOKEN_BYTES)


class MagicLinkStore:
    """Issues and redeems single-use magic links."""

    def __init__(
        self,
        cache: Cache,
        notifier: MagicLinkNotifier,
        ttl_seconds: int | None = None,
        clock: Callable[[], datetime] | None = None,
        enqueue_timeout: float | None = None,
    ):
        self.cache = cache
        self.notifier = notifier
        self.ttl_seconds = ttl_seconds or settings.magic_link_ttl_seconds
        self._clock = clock or (lambda: datetime.now(UTC))
        self.enqueue_timeout = enqueue_timeout or settings.CACHE_OPERATION_TIMEOUT_SEC

    async def issue(
        self,
        recipient: MagicLinkRecipient,
        redirect_url: str,
    ) -> MagicLink:
        """Create a link, store it and schedule its delivery.

        Raises:
            CacheUnavailableError: the link could not be stored (nothing enqueued)
            JobQueueUnavailableError: stored but not enqueued (logged as a delivery gap)
        """
        now = self._clock()
        magic_link = MagicLink(
            id=generate_token(),
            subject_id=recipient.subject_id,
            issued_at=now,
            expires_at=now + timedelta(seconds=self.ttl_seconds),
            redirect_url=redirect_url,
        )

        await self.cache.set(
            RedisKeys.magic_link(magic_link.id),
            magic_link.model_dump_json(),
            self.ttl_seconds,
        )
        BusinessEvents.magic_link_issued(
            subject_id=magic_link.subject_id,
            token_hint=magic_link.hint,
            expires_at=magic_link.expires_at.isoformat(),
        )

        try:
            job_id = await asyncio.wait_for(
                self.notifier.enqueue(magic_link, recipient),
                timeout=self.enqueue_timeout,
            )
        except (JobQueueUnavailableError, JobError, TimeoutError) as e:
            reason = str(e) or type(e).__name__
            logger.error(
                f"Magic link stored but notification not enqueued: "
                f"subject={magic_link.subject_id} error={reason}"
            )
            BusinessEvents.magic_link_delivery_gap(
                subject_id=magic_link.subject_id,
                token_hint=magic_link.hint,
                error=reason,
            )
            if isinstance(e, JobQueueUnavailableError):
                raise
            raise JobQueueUnavailableError(JobFamilies.NOTIFICATIONS, reason) from e

        BusinessEvents.magic_link_email_enqueued(
            subject_id=magic_link.subject_id,
            token_hint=magic_link.hint,
            job_id=job_id,
        )
        return magic_link

    async def redeem(self, token_id: str) -> MagicLink | None:
        """Consume a link. Returns None when it is unknown, used or expired."""
        if not _TOKEN_PATTERN.fullmatch(token_id or ""):
            logger.debug("Rejected malformed magic link token")
            return None

        raw = await self.cache.pop(RedisKeys.magic_link(token_id))
        if raw is None:
            logger.debug("Magic link not found or already used")
            return None

        try:
            magic_link = MagicLink.model_validate_json(raw)
        except ValueError:
            logger.warning("Discarding undecodable magic link record")
            return None

        if magic_link.is_expired(self._clock()):
            logger.info(
                f"Magic link expired: subject={magic_link.subject_id}, "
                f"expires_at={magic_link.expires_at}"
            )
            return None

        BusinessEvents.magic_link_redeemed(
            subject_id=magic_link.subject_id,
            token_hint=magic_link.hint,
        )
        return magic_link
