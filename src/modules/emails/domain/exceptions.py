"""Email domain exceptions."""

from fastapi import status

from src.core.domain.exceptions import DomainException


class EmailDeliveryError(DomainException):
    """Raised when the gateway did not accept a message."""

    http_status_code = status.HTTP_502_BAD_GATEWAY
    error_code = "EMAIL_DELIVERY_FAILED"

    def __init__(self, reason: str = "Error sending email") -> None:
        super().__init__(reason)
