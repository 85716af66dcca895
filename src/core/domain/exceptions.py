"""Base domain exceptions.

所有领域异常都应继承自 DomainException，并可以通过定义 http_status_code 和 error_code
类属性来指定 HTTP 响应细节（路由层负责转换）。
"""

from fastapi import status


class DomainException(Exception):
    """Base exception for all domain errors.

    子类可以通过定义以下类属性来自定义 HTTP 响应：
    - http_status_code: HTTP 状态码（默认 400）
    - error_code: 错误代码字符串（默认 "DOMAIN_ERROR"）
    """

    http_status_code: int = status.HTTP_400_BAD_REQUEST
    error_code: str = "DOMAIN_ERROR"

    def __init__(self, message: str = "A domain error occurred"):
        self.message = message
        super().__init__(self.message)


class ValidationError(DomainException):
    """Raised when validation fails.

    issues 按字段路径分组，例如 {"idempotencyKey": ["Invalid idempotency key"]}。
    """

    http_status_code = status.HTTP_400_BAD_REQUEST
    error_code = "VALIDATION_ERROR"

    def __init__(
        self,
        issues: dict[str, list[str]],
        message: str = "Request validation failed",
    ):
        self.issues = issues
        super().__init__(message)


class ServiceUnavailableError(DomainException):
    """Raised when a backing service (cache, queue) cannot be reached."""

    http_status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_code = "SERVICE_UNAVAILABLE"


class CacheUnavailableError(ServiceUnavailableError):
    """Raised when the expiring cache is unavailable or timed out."""

    error_code = "CACHE_UNAVAILABLE"

    def __init__(self, operation: str, reason: str | None = None):
        message = f"Cache operation '{operation}' failed"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class JobQueueUnavailableError(ServiceUnavailableError):
    """Raised when a job could not be handed to the queue."""

    error_code = "JOB_QUEUE_UNAVAILABLE"

    def __init__(self, family: str, reason: str | None = None):
        message = f"Job queue for '{family}' is unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
