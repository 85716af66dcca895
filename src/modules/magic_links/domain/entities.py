"""Magic link domain entities."""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class MagicLink(BaseModel):
    """Single-use, time-bound login grant.

    记录创建后不可变；兑换即删除，未兑换则随缓存 TTL 自动回收。
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="随机令牌（64 位十六进制）")
    subject_id: str = Field(..., description="被认证的身份ID")
    issued_at: datetime = Field(..., description="签发时间")
    expires_at: datetime = Field(..., description="过期时间")
    redirect_url: str = Field(..., description="兑换后跳转地址")

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the link can no longer be redeemed."""
        current = now or datetime.now(UTC)
        return current >= self.expires_at

    def login_url(self, login_path: str) -> str:
        """Build `{redirect_url}/{login_path}/{id}`."""
        return f"{self.redirect_url.rstrip('/')}/{login_path.strip('/')}/{self.id}"

    @property
    def hint(self) -> str:
        """Short prefix that is safe to log."""
        return f"{self.id[:8]}…"


class MagicLinkRecipient(BaseModel):
    """Who the link is for and where it is delivered."""

    model_config = ConfigDict(frozen=True)

    subject_id: str = Field(..., description="身份ID")
    email: EmailStr = Field(..., description="投递邮箱")
    user_id: str | None = Field(default=None, description="关联用户ID（审计用）")
