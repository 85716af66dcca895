"""Default email audit sink."""

from src.core.infrastructure.logging import BusinessEvents
from src.modules.emails.domain.entities import EmailDeliveryRecord


class LoggingEmailAuditSink:
    """Writes delivery records as business events.

    持久化层可以提供自己的 EmailAuditSink 实现（如写入 emails 表）。
    """

    async def record(self, records: list[EmailDeliveryRecord]) -> None:
        for record in records:
            BusinessEvents.email_sent(
                provider_id=record.provider_id,
                to_email=record.email,
                subject=record.subject,
                created_by_id=record.created_by_id,
                status=record.status.value,
            )
