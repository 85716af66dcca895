"""Magic link module ports."""

from typing import Protocol

from src.modules.magic_links.domain.entities import MagicLink, MagicLinkRecipient


class MagicLinkNotifier(Protocol):
    """Port for scheduling delivery of a freshly issued link."""

    async def enqueue(self, magic_link: MagicLink, recipient: MagicLinkRecipient) -> str:
        """Schedule delivery and return the job id. Must not wait for delivery."""
        ...


class IdentityDirectory(Protocol):
    """Port to the identity store (owned by the persistence layer)."""

    async def get_or_create(self, email: str) -> MagicLinkRecipient:
        """Resolve the identity for email, creating it on first login."""
        ...
