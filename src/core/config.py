"""Application configuration."""

import warnings
from typing import Literal, Self

from pydantic import EmailStr, HttpUrl, computed_field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    # Application
    PROJECT_NAME: str = "taxi-core"
    APP_NAME: str = "EuroTaxi"
    APP_EMAIL: EmailStr = "info@myeurotaxi.com"
    EMAIL_TEST_SENDER: EmailStr = "info@myeurotaxi.com"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    LOG_LEVEL: str = "INFO"

    # Sentry
    SENTRY_DSN: HttpUrl | None = None

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_SOCKET_TIMEOUT_SEC: float = 10.0
    REDIS_CONNECT_TIMEOUT_SEC: float = 5.0
    CACHE_OPERATION_TIMEOUT_SEC: float = 5.0

    # Magic links
    MAGIC_LINK_EXPIRE_MINUTES: int = 30  # Magic link 30分钟过期
    MAGIC_LINK_LOGIN_PATH: str = "prihlasit"
    MAGIC_LINK_TEMPLATE_ID: int = 15

    # Idempotency
    IDEMPOTENCY_TTL_SEC: int = 60 * 60 * 24

    # Brevo（邮件网关）
    BREVO_API_KEY: str = "changethis"
    BREVO_API_BASE: str = "https://api.brevo.com/v3"
    BREVO_TIMEOUT_SEC: float = 10.0
    BREVO_TRANSPORT_RETRIES: int = 2

    # Jobs
    JOB_BACKEND: Literal["redis", "memory"] = "redis"
    JOB_MAX_ATTEMPTS: int = 3
    JOB_BACKOFF_BASE_SEC: float = 5.0
    JOB_BACKOFF_FACTOR: float = 2.0
    JOB_BACKOFF_MAX_SEC: float = 300.0  # 退避上限 5 分钟
    JOB_HANDLER_TIMEOUT_SEC: float = 30.0
    JOB_POLL_TIMEOUT_SEC: float = 1.0
    JOB_QUEUE_DEPTH_WARNING: int = 1000
    JOB_FAILED_RETENTION_COUNT: int = 500
    JOB_FAILED_RETENTION_SEC: int = 60 * 60 * 24  # 失败任务保留 24 小时

    @computed_field
    @property
    def magic_link_ttl_seconds(self) -> int:
        return self.MAGIC_LINK_EXPIRE_MINUTES * 60

    @computed_field
    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    def _check_default_secret(self, var_name: str, value: str | None) -> None:
        if value == "changethis":
            message = (
                f'The value of {var_name} is "changethis", '
                "for security, please change it, at least for deployments."
            )
            if self.ENVIRONMENT == "local":
                warnings.warn(message, stacklevel=1)
            else:
                raise ValueError(message)

    @model_validator(mode="after")
    def _enforce_non_default_secrets(self) -> Self:
        self._check_default_secret("BREVO_API_KEY", self.BREVO_API_KEY)
        return self


settings = Settings()
