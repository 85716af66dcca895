"""Email module ports."""

from typing import Protocol

from src.modules.emails.domain.entities import EmailDeliveryRecord, EmailMessage


class EmailGateway(Protocol):
    """Port for the external delivery gateway."""

    async def send(self, message: EmailMessage) -> list[str]:
        """Send message and return provider message ids."""
        ...


class EmailAuditSink(Protocol):
    """Port for persisting delivery results (owned by the persistence layer)."""

    async def record(self, records: list[EmailDeliveryRecord]) -> None: ...
