"""Notification job family 单元测试。

测试覆盖：
- send-magic-link / send-welcome-email / send-email 处理
- 无效 payload 直接失败
- 网关失败重试直至成功 / 进入死信
- 签发 → 入队 → worker 发送 的完整链路
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from src.core.config import settings
from src.core.infrastructure.jobs import NO_BACKOFF, Job, JobDispatcher, JobOutcome
from src.core.infrastructure.jobs.exceptions import PermanentJobError
from src.core.infrastructure.jobs.memory_queue import InMemoryJobQueue
from src.modules.emails.application.email_service import EmailService
from src.modules.emails.infrastructure.brevo import BrevoError
from src.modules.magic_links.application.token_store import MagicLinkStore
from src.modules.magic_links.domain.entities import MagicLink, MagicLinkRecipient
from src.modules.magic_links.infrastructure.job_notifier import JobMagicLinkNotifier
from src.modules.notifications.jobs import (
    NotificationJob,
    NotificationJobs,
    default_sender,
)

pytestmark = pytest.mark.anyio


def _fresh_link(token_id: str = "b" * 64) -> MagicLink:
    now = datetime.now(UTC)
    return MagicLink(
        id=token_id,
        subject_id="subject-1",
        issued_at=now,
        expires_at=now + timedelta(minutes=30),
        redirect_url="https://myeurotaxi.com/",
    )


def _magic_link_job(link: MagicLink, **payload) -> Job:
    data = {
        "subject_id": link.subject_id,
        "token": link.model_dump(mode="json"),
        "template": 15,
        "destination": {"email": "rider@example.com", "user_id": "user-1"},
    }
    data.update(payload)
    return Job(
        family="notifications",
        name=NotificationJobs.SEND_MAGIC_LINK,
        payload=data,
        max_attempts=3,
    )


@pytest.fixture
def notification_job(mock_email_gateway) -> NotificationJob:
    return NotificationJob(
        email_service=EmailService(mock_email_gateway, AsyncMock()),
        login_path="prihlasit",
    )


class TestNotificationJob:
    async def test_send_magic_link(self, notification_job, mock_email_gateway):
        link = _fresh_link()

        await notification_job.handle(_magic_link_job(link))

        message = mock_email_gateway.send.await_args.args[0]
        assert message.template_id == 15
        assert message.params == {
            "link": f"https://myeurotaxi.com/prihlasit/{link.id}"
        }
        assert message.to[0].email == "rider@example.com"
        assert settings.APP_NAME in message.subject
        assert message.sender == default_sender()

    async def test_expired_link_is_not_sent(self, notification_job, mock_email_gateway):
        link = _fresh_link().model_copy(
            update={"expires_at": datetime.now(UTC) - timedelta(minutes=1)}
        )

        await notification_job.handle(_magic_link_job(link))

        mock_email_gateway.send.assert_not_awaited()

    async def test_send_welcome_email(self, notification_job, mock_email_gateway):
        job = Job(
            family="notifications",
            name=NotificationJobs.SEND_WELCOME_EMAIL,
            payload={
                "subject_id": "subject-1",
                "destination": {"email": "rider@example.com"},
                "name": "Jan",
            },
            max_attempts=3,
        )

        await notification_job.handle(job)

        message = mock_email_gateway.send.await_args.args[0]
        assert message.template_id is None
        assert "Jan" in message.html
        assert "rider@example.com" in message.text

    async def test_send_prepared_email(self, notification_job, mock_email_gateway):
        job = Job(
            family="notifications",
            name=NotificationJobs.SEND_EMAIL,
            payload={
                "message": {
                    "sender": {"name": "EuroTaxi", "email": "info@myeurotaxi.com"},
                    "to": [{"email": "driver@example.com"}],
                    "subject": "Nová jízda",
                    "text": "Máte novou jízdu.",
                },
                "created_by_id": "admin-1",
            },
            max_attempts=3,
        )

        await notification_job.handle(job)

        message = mock_email_gateway.send.await_args.args[0]
        assert message.subject == "Nová jízda"

    async def test_invalid_payload_is_permanent(self, notification_job):
        job = Job(
            family="notifications",
            name=NotificationJobs.SEND_MAGIC_LINK,
            payload={"subject_id": "subject-1"},
            max_attempts=3,
        )

        with pytest.raises(PermanentJobError):
            await notification_job.handle(job)

    def test_register_declares_all_names(self, job_dispatcher, notification_job):
        worker = notification_job.register(job_dispatcher)

        assert worker.names == {name.value for name in NotificationJobs}


class TestMagicLinkDelivery:
    @pytest.fixture
    def dispatcher(self, job_dispatcher, notification_job) -> JobDispatcher:
        notification_job.register(job_dispatcher)
        return job_dispatcher

    @pytest.fixture
    def store(self, dispatcher, memory_cache) -> MagicLinkStore:
        return MagicLinkStore(
            cache=memory_cache,
            notifier=JobMagicLinkNotifier(dispatcher, template_id=15),
        )

    @staticmethod
    async def _drain(dispatcher: JobDispatcher) -> list[JobOutcome]:
        worker = dispatcher.get_worker("notifications")
        outcomes = []
        while (outcome := await worker.process_next()) is not None:
            outcomes.append(outcome)
        return outcomes

    async def test_issue_enqueues_and_worker_sends(
        self, dispatcher, store, mock_email_gateway
    ):
        recipient = MagicLinkRecipient(subject_id="u1", email="u1@example.com")

        link = await store.issue(recipient, "https://app.example/")
        mock_email_gateway.send.assert_not_awaited()

        assert await self._drain(dispatcher) == [JobOutcome.COMPLETED]
        message = mock_email_gateway.send.await_args.args[0]
        assert message.params["link"].endswith(f"/{link.id}")

    async def test_gateway_fails_twice_then_succeeds(
        self, notification_job, mock_email_gateway, memory_cache
    ):
        dispatcher = JobDispatcher(
            queue_factory=InMemoryJobQueue, default_backoff=NO_BACKOFF
        )
        dispatcher.register(
            "notifications",
            notification_job.handle,
            names=list(NotificationJobs),
            max_attempts=5,
        )
        mock_email_gateway.send = AsyncMock(
            side_effect=[BrevoError("HTTP 503"), BrevoError("HTTP 503"), ["<id>"]]
        )
        store = MagicLinkStore(
            cache=memory_cache, notifier=JobMagicLinkNotifier(dispatcher)
        )

        await store.issue(
            MagicLinkRecipient(subject_id="u1", email="u1@example.com"),
            "https://app.example/",
        )
        outcomes = await self._drain(dispatcher)

        assert outcomes == [
            JobOutcome.RETRYING,
            JobOutcome.RETRYING,
            JobOutcome.COMPLETED,
        ]
        assert mock_email_gateway.send.await_count == 3
        assert (await dispatcher.stats("notifications")).completed == 1

    async def test_gateway_keeps_failing_dead_letters(
        self, dispatcher, store, mock_email_gateway
    ):
        mock_email_gateway.send = AsyncMock(side_effect=BrevoError("HTTP 503"))

        await store.issue(
            MagicLinkRecipient(subject_id="u1", email="u1@example.com"),
            "https://app.example/",
        )
        outcomes = await self._drain(dispatcher)

        assert outcomes[-1] == JobOutcome.FAILED
        assert mock_email_gateway.send.await_count == 3
        assert len(await dispatcher.failed_jobs("notifications")) == 1

    async def test_welcome_email_job_completes_through_worker(
        self, dispatcher, mock_email_gateway
    ):
        await dispatcher.enqueue(
            "notifications",
            NotificationJobs.SEND_WELCOME_EMAIL,
            {
                "subject_id": "u1",
                "destination": {"email": "u1@example.com"},
                "name": "Jan",
            },
        )

        assert await self._drain(dispatcher) == [JobOutcome.COMPLETED]
        assert await dispatcher.failed_jobs("notifications") == []
        message = mock_email_gateway.send.await_args.args[0]
        assert message.to[0].name == "Jan"
