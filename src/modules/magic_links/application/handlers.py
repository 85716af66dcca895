"""Magic link command handlers."""

from collections.abc import Mapping
from typing import Any

from loguru import logger

from src.core.config import settings
from src.modules.idempotency.application.guard import (
    IdempotencyGuard,
    ValidationIssues,
)
from src.modules.idempotency.infrastructure.store import IdempotencyStore
from src.modules.magic_links.application.commands import (
    MagicLinkRequested,
    RequestMagicLinkInput,
)
from src.modules.magic_links.application.token_store import MagicLinkStore
from src.modules.magic_links.domain.ports import IdentityDirectory


class RequestMagicLinkHandler:
    """Handle a magic link request guarded by an idempotency key."""

    scope = "magic-link"

    def __init__(
        self,
        magic_link_store: MagicLinkStore,
        identity_directory: IdentityDirectory,
        idempotency_store: IdempotencyStore,
        guard: IdempotencyGuard | None = None,
    ):
        self.magic_link_store = magic_link_store
        self.identity_directory = identity_directory
        self.idempotency_store = idempotency_store
        self.guard = guard or IdempotencyGuard()
        self.logger = logger

    async def handle(
        self, data: Mapping[str, Any]
    ) -> MagicLinkRequested | ValidationIssues:
        """Validate, deduplicate, then issue.

        A replayed idempotency key returns duplicate=True without issuing a
        second link. If issuing fails the key is released so the client can retry.
        """
        result = self.guard.extract_and_validate(data, RequestMagicLinkInput)
        if isinstance(result, ValidationIssues):
            return result

        command: RequestMagicLinkInput = result.output
        key = result.idempotency_key
        if not await self.idempotency_store.claim(self.scope, key):
            return MagicLinkRequested(duplicate=True)

        try:
            recipient = await self.identity_directory.get_or_create(command.email)
            magic_link = await self.magic_link_store.issue(
                recipient, command.redirect_url
            )
        except Exception:
            await self.idempotency_store.release(self.scope, key)
            raise

        # 本地开发环境：打印登录链接到日志，方便调试
        if settings.ENVIRONMENT == "local":
            login_url = magic_link.login_url(settings.MAGIC_LINK_LOGIN_PATH)
            self.logger.warning(f"[DEV LOGIN] 点击此链接登录: {login_url}")

        return MagicLinkRequested(expires_at=magic_link.expires_at)
