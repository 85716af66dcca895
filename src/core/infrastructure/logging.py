"""Logging setup.

- loguru: developer logs (stderr, plus a daily file outside local)
- structlog: business events (BusinessEvents), JSON outside local so they
  can be shipped and queried
"""

import sys
from typing import Any

import structlog
from loguru import logger

from src.core.config import settings

_LEVELS = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40, "CRITICAL": 50}

_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def setup_logging(level: str | None = None) -> None:
    """Configure loguru and structlog. Call once per process."""
    level = (level or settings.LOG_LEVEL).upper()
    local = settings.ENVIRONMENT == "local"

    logger.remove()
    logger.add(sys.stderr, level=level, format=_CONSOLE_FORMAT, colorize=local)
    if not local:
        logger.add(
            "logs/taxi_core_{time:YYYY-MM-DD}.log",
            rotation="00:00",
            retention="30 days",
            level="INFO",
            format=_FILE_FORMAT,
        )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=True)
            if local
            else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_LEVELS.get(level, 20)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    logger.info(f"Logging configured with level: {level}")


# ============================================================================
# 业务事件日志记录器
# ============================================================================


class BusinessEvents:
    """业务事件日志助手类。

    提供统一的业务事件日志记录接口，确保事件格式一致。
    令牌本身从不写入日志，只记录其前缀。
    """

    _log = structlog.get_logger("business.events")

    @classmethod
    def magic_link_issued(
        cls,
        subject_id: str,
        token_hint: str,
        expires_at: str,
        **extra: Any,
    ) -> None:
        """记录 magic link 签发事件。"""
        cls._log.info(
            "magic_link_issued",
            event_type="auth",
            subject_id=subject_id,
            token_hint=token_hint,
            expires_at=expires_at,
            **extra,
        )

    @classmethod
    def magic_link_redeemed(
        cls,
        subject_id: str,
        token_hint: str,
        **extra: Any,
    ) -> None:
        """记录 magic link 兑换事件。"""
        cls._log.info(
            "magic_link_redeemed",
            event_type="auth",
            subject_id=subject_id,
            token_hint=token_hint,
            **extra,
        )

    @classmethod
    def magic_link_email_enqueued(
        cls,
        subject_id: str,
        token_hint: str,
        job_id: str,
        **extra: Any,
    ) -> None:
        """记录 magic link 邮件入队事件。"""
        cls._log.info(
            "magic_link_email_enqueued",
            event_type="auth",
            subject_id=subject_id,
            token_hint=token_hint,
            job_id=job_id,
            **extra,
        )

    @classmethod
    def magic_link_delivery_gap(
        cls,
        subject_id: str,
        token_hint: str,
        error: str,
        **extra: Any,
    ) -> None:
        """记录令牌已写入缓存但通知未能入队的情况。"""
        cls._log.error(
            "magic_link_delivery_gap",
            event_type="auth",
            subject_id=subject_id,
            token_hint=token_hint,
            error=error,
            **extra,
        )

    @classmethod
    def email_sent(
        cls,
        provider_id: str,
        to_email: str,
        subject: str,
        created_by_id: str | None,
        **extra: Any,
    ) -> None:
        """记录邮件发送事件。"""
        cls._log.info(
            "email_sent",
            event_type="email",
            provider_id=provider_id,
            to_email=to_email,
            subject=subject,
            created_by_id=created_by_id,
            **extra,
        )

    @classmethod
    def job_enqueued(
        cls,
        family: str,
        name: str,
        job_id: str,
        **extra: Any,
    ) -> None:
        """记录任务入队事件。"""
        cls._log.info(
            "job_enqueued",
            event_type="job",
            family=family,
            name=name,
            job_id=job_id,
            **extra,
        )

    @classmethod
    def job_completed(
        cls,
        family: str,
        name: str,
        job_id: str,
        attempt: int,
        **extra: Any,
    ) -> None:
        """记录任务完成事件。"""
        cls._log.info(
            "job_completed",
            event_type="job",
            family=family,
            name=name,
            job_id=job_id,
            attempt=attempt,
            **extra,
        )

    @classmethod
    def job_retry_scheduled(
        cls,
        family: str,
        name: str,
        job_id: str,
        attempt: int,
        delay_sec: float,
        error: str,
        **extra: Any,
    ) -> None:
        """记录任务重试事件。"""
        cls._log.warning(
            "job_retry_scheduled",
            event_type="job",
            family=family,
            name=name,
            job_id=job_id,
            attempt=attempt,
            delay_sec=round(delay_sec, 3),
            error=error,
            **extra,
        )

    @classmethod
    def job_failed(
        cls,
        family: str,
        name: str,
        job_id: str,
        attempt: int,
        error: str,
        **extra: Any,
    ) -> None:
        """记录任务进入失败状态（不再自动重试）。"""
        cls._log.error(
            "job_failed",
            event_type="job",
            family=family,
            name=name,
            job_id=job_id,
            attempt=attempt,
            error=error,
            **extra,
        )
