"""taxi-core 后台任务进程入口。

Usage:
    python worker.py
"""

import asyncio
import signal

import sentry_sdk
from loguru import logger

from src.core.config import settings
from src.core.infrastructure.jobs import get_job_dispatcher
from src.core.infrastructure.logging import setup_logging
from src.core.infrastructure.redis import RedisUnavailableError, redis_client
from src.modules.notifications.jobs import NotificationJob

# Initialize Sentry if configured
if settings.SENTRY_DSN and settings.ENVIRONMENT != "local":
    sentry_sdk.init(
        dsn=str(settings.SENTRY_DSN),
        environment=settings.ENVIRONMENT,
    )


async def run() -> None:
    setup_logging()
    logger.info(f"Starting {settings.PROJECT_NAME} worker...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    if settings.JOB_BACKEND == "redis":
        try:
            await redis_client.require_available(timeout=5.0)
        except RedisUnavailableError as e:
            logger.error(f"Redis unavailable, refusing to start workers: {e}")
            raise

    dispatcher = get_job_dispatcher()
    NotificationJob().register(dispatcher)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    dispatcher.start()
    await stop.wait()

    logger.info(f"Shutting down {settings.PROJECT_NAME} worker...")
    await dispatcher.shutdown()
    await redis_client.close()


if __name__ == "__main__":
    asyncio.run(run())
