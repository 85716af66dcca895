"""MagicLinkNotifier backed by the job dispatcher."""

from src.core.config import settings
from src.core.infrastructure.jobs.dispatcher import JobDispatcher, get_job_dispatcher
from src.modules.magic_links.domain.entities import MagicLink, MagicLinkRecipient
from src.modules.notifications.jobs import NotificationJob, NotificationJobs


class JobMagicLinkNotifier:
    """Enqueues a send-magic-link job; delivery happens in the worker process."""

    def __init__(
        self,
        dispatcher: JobDispatcher | None = None,
        template_id: int | None = None,
    ):
        self._dispatcher = dispatcher
        self.template_id = template_id or settings.MAGIC_LINK_TEMPLATE_ID

    @property
    def dispatcher(self) -> JobDispatcher:
        if self._dispatcher is None:
            dispatcher = get_job_dispatcher()
            # 生产方只需注册（不启动 worker）即可入队
            NotificationJob().register(dispatcher)
            self._dispatcher = dispatcher
        return self._dispatcher

    async def enqueue(self, magic_link: MagicLink, recipient: MagicLinkRecipient) -> str:
        job = await self.dispatcher.enqueue(
            NotificationJob.family,
            NotificationJobs.SEND_MAGIC_LINK,
            {
                "subject_id": recipient.subject_id,
                "token": magic_link.model_dump(mode="json"),
                "template": self.template_id,
                "destination": {
                    "email": recipient.email,
                    "user_id": recipient.user_id,
                },
            },
        )
        return job.id
