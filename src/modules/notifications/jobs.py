"""Notification job family.

同一任务可能被执行多次（at-least-once），重复发送同一封 magic link 邮件是可以接受的：
令牌本身仍然只能兑换一次。
"""

from enum import StrEnum

from loguru import logger
from pydantic import BaseModel, EmailStr, Field, ValidationError

from src.core.config import settings
from src.core.domain.queues import JobFamilies
from src.core.infrastructure.email.template_loader import render_email
from src.core.infrastructure.jobs.dispatcher import JobDispatcher
from src.core.infrastructure.jobs.exceptions import PermanentJobError
from src.core.infrastructure.jobs.models import Job
from src.core.infrastructure.jobs.worker import JobWorker
from src.modules.emails.application.email_service import EmailService, get_email_service
from src.modules.emails.domain.entities import EmailMessage, Recipient, Sender
from src.modules.magic_links.domain.entities import MagicLink


class NotificationJobs(StrEnum):
    """Closed set of job names in the notifications family."""

    SEND_MAGIC_LINK = "send-magic-link"
    SEND_WELCOME_EMAIL = "send-welcome-email"
    SEND_EMAIL = "send-email"


class Destination(BaseModel):
    email: EmailStr
    user_id: str | None = None


class MagicLinkJobData(BaseModel):
    subject_id: str
    token: MagicLink
    template: int = Field(default_factory=lambda: settings.MAGIC_LINK_TEMPLATE_ID)
    destination: Destination


class WelcomeEmailJobData(BaseModel):
    subject_id: str
    destination: Destination
    name: str | None = None


class SendEmailJobData(BaseModel):
    message: EmailMessage
    created_by_id: str | None = None


def default_sender() -> Sender:
    """Production sends as the app; other environments use the test sender."""
    if settings.is_production:
        return Sender(name=settings.APP_NAME, email=settings.APP_EMAIL)
    return Sender(name="Test App", email=settings.EMAIL_TEST_SENDER)


class NotificationJob:
    """Turns notification jobs into outbound emails."""

    family = JobFamilies.NOTIFICATIONS
    names = NotificationJobs

    def __init__(
        self,
        email_service: EmailService | None = None,
        login_path: str | None = None,
    ):
        self._email_service = email_service
        self.login_path = login_path or settings.MAGIC_LINK_LOGIN_PATH

    @property
    def email_service(self) -> EmailService:
        if self._email_service is None:
            self._email_service = get_email_service()
        return self._email_service

    def register(self, dispatcher: JobDispatcher) -> JobWorker:
        return dispatcher.register(self.family, self.handle, names=list(self.names))

    async def handle(self, job: Job) -> None:
        try:
            match job.name:
                case NotificationJobs.SEND_MAGIC_LINK:
                    data = MagicLinkJobData.model_validate(job.payload)
                    await self.send_magic_link(data)
                case NotificationJobs.SEND_WELCOME_EMAIL:
                    data = WelcomeEmailJobData.model_validate(job.payload)
                    await self.send_welcome_email(data)
                case NotificationJobs.SEND_EMAIL:
                    data = SendEmailJobData.model_validate(job.payload)
                    await self.email_service.send_email(data.message, data.created_by_id)
                case _:
                    raise PermanentJobError(f"Unhandled notification job '{job.name}'")
        except ValidationError as e:
            raise PermanentJobError(f"Invalid payload for {job.name}: {e}") from e

    async def send_magic_link(self, data: MagicLinkJobData) -> None:
        magic_link = data.token
        if magic_link.is_expired():
            logger.warning(
                f"Magic link expired before delivery: subject={data.subject_id}"
            )
            return

        message = EmailMessage(
            sender=default_sender(),
            to=[Recipient(email=data.destination.email)],
            subject=f"Váš odkaz na přihlášení na webu {settings.APP_NAME}",
            template_id=data.template,
            params={"link": magic_link.login_url(self.login_path)},
        )
        await self.email_service.send_email(message, data.destination.user_id)

    async def send_welcome_email(self, data: WelcomeEmailJobData) -> None:
        variables = {
            "app_name": settings.APP_NAME,
            "name": data.name,
            "to_email": data.destination.email,
        }
        html, text = render_email("welcome", **variables)
        message = EmailMessage(
            sender=default_sender(),
            to=[Recipient(email=data.destination.email, name=data.name)],
            subject=f"Vítejte na webu {settings.APP_NAME}",
            html=html,
            text=text,
        )
        await self.email_service.send_email(message, data.destination.user_id)
