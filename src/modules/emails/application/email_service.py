"""Email service.

Provides:
- Delivery through the configured gateway
- Audit records per recipient
- Generic error surface (gateway details stay in the logs)
"""

from loguru import logger

from src.modules.emails.domain.entities import (
    EmailDeliveryRecord,
    EmailMessage,
    EmailStatus,
)
from src.modules.emails.domain.exceptions import EmailDeliveryError
from src.modules.emails.domain.ports import EmailAuditSink, EmailGateway
from src.modules.emails.infrastructure.brevo import BrevoError


class EmailService:
    """Send an email via the gateway and record the result."""

    def __init__(self, gateway: EmailGateway, audit_sink: EmailAuditSink):
        self.gateway = gateway
        self.audit_sink = audit_sink

    async def send_email(
        self,
        message: EmailMessage,
        created_by_id: str | None = None,
    ) -> list[str]:
        """Send message; raises EmailDeliveryError when nothing was accepted.

        Returns:
            Provider message ids
        """
        try:
            message_ids = await self.gateway.send(message)
        except BrevoError as e:
            logger.error(
                f"Brevo error sending email: status={e.status_code} "
                f"context={e.context} error={e}"
            )
            raise EmailDeliveryError() from e

        if not message_ids:
            logger.error(f"No message ids returned for email '{message.subject}'")
            raise EmailDeliveryError("No message IDs returned from gateway")

        records = [
            EmailDeliveryRecord(
                provider_id=message_id,
                email=recipient.email,
                subject=message.subject,
                status=EmailStatus.SENT,
                created_by_id=created_by_id,
            )
            for message_id, recipient in zip(message_ids, message.to, strict=False)
        ]
        await self.audit_sink.record(records)

        logger.info(
            f"Email sent: subject='{message.subject}' "
            f"recipients={len(message.to)} ids={message_ids}"
        )
        return message_ids


_email_service: EmailService | None = None


def get_email_service() -> EmailService:
    """获取默认邮件服务（Brevo + 日志审计）。"""
    global _email_service
    if _email_service is None:
        from src.modules.emails.infrastructure.audit import LoggingEmailAuditSink
        from src.modules.emails.infrastructure.brevo import BrevoEmailGateway

        _email_service = EmailService(BrevoEmailGateway(), LoggingEmailAuditSink())
    return _email_service
