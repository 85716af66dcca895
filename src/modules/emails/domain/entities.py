"""Email domain entities."""

from datetime import UTC, datetime
from enum import Enum
from typing import Self

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator


class EmailStatus(str, Enum):
    """Delivery status recorded for a sent email."""

    SENT = "sent"
    FAILED = "failed"


class Sender(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="发件人名称")
    email: EmailStr = Field(..., description="发件人邮箱")


class Recipient(BaseModel):
    model_config = ConfigDict(frozen=True)

    email: EmailStr = Field(..., description="收件人邮箱")
    name: str | None = Field(default=None, description="收件人名称")


class EmailMessage(BaseModel):
    """Outbound email.

    内容二选一：template_id（配合 params），或 html / text 正文（可同时提供）。
    """

    model_config = ConfigDict(frozen=True)

    sender: Sender
    to: list[Recipient] = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    template_id: int | None = Field(default=None, description="网关模板ID")
    params: dict[str, str] = Field(default_factory=dict, description="模板参数")
    html: str | None = None
    text: str | None = None

    @model_validator(mode="after")
    def _check_body(self) -> Self:
        has_body = self.html is not None or self.text is not None
        if (self.template_id is not None) == has_body:
            raise ValueError("Provide either template_id or an html/text body")
        return self


class EmailDeliveryRecord(BaseModel):
    """Audit record of one delivered message, one per recipient."""

    model_config = ConfigDict(frozen=True)

    provider_id: str
    email: str
    subject: str
    status: EmailStatus = EmailStatus.SENT
    created_by_id: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
