"""Magic link application commands."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class RequestMagicLinkInput(BaseModel):
    """Request a login link by email."""

    model_config = ConfigDict(populate_by_name=True)

    email: EmailStr
    redirect_url: str = Field(..., alias="redirectUrl", min_length=1)


class MagicLinkRequested(BaseModel):
    """Result returned to the caller. Never carries the token."""

    expires_at: datetime | None = None
    duplicate: bool = False
