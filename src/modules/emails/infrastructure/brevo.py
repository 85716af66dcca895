"""Brevo transactional email gateway.

POST {BREVO_API_BASE}/smtp/email，响应体包含 messageId 或 messageIds。
网络层错误由 tenacity 做少量重试；业务层重试交给任务调度器。
"""

from typing import Any

import httpx
from loguru import logger
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.core.config import settings
from src.modules.emails.domain.entities import EmailMessage


class BrevoError(Exception):
    """Raised when Brevo rejects a request or cannot be reached."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        context: Any = None,
    ):
        self.status_code = status_code
        self.context = context
        super().__init__(message)


class BrevoEmailGateway:
    """EmailGateway port backed by the Brevo HTTP API."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport_retries: int | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key or settings.BREVO_API_KEY
        self.base_url = (base_url or settings.BREVO_API_BASE).rstrip("/")
        self.timeout = timeout or settings.BREVO_TIMEOUT_SEC
        self.transport_retries = (
            settings.BREVO_TRANSPORT_RETRIES
            if transport_retries is None
            else transport_retries
        )
        self._http_client = http_client

    @staticmethod
    def build_payload(message: EmailMessage) -> dict[str, Any]:
        """Map an EmailMessage onto Brevo's sendTransacEmail body."""
        payload: dict[str, Any] = {
            "sender": {"name": message.sender.name, "email": message.sender.email},
            "to": [
                {"email": r.email, **({"name": r.name} if r.name else {})}
                for r in message.to
            ],
            "subject": message.subject,
        }
        if message.template_id is not None:
            payload["templateId"] = message.template_id
            payload["params"] = dict(message.params)
        else:
            if message.html is not None:
                payload["htmlContent"] = message.html
            if message.text is not None:
                payload["textContent"] = message.text
        return payload

    async def _post(self, client: httpx.AsyncClient, body: dict[str, Any]) -> httpx.Response:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(httpx.TransportError),
            stop=stop_after_attempt(self.transport_retries + 1),
            wait=wait_exponential(multiplier=0.2, max=2),
            reraise=True,
        ):
            with attempt:
                return await client.post(
                    f"{self.base_url}/smtp/email",
                    json=body,
                    headers={
                        "api-key": self.api_key,
                        "accept": "application/json",
                    },
                )
        raise BrevoError("Brevo request was not attempted")

    async def send(self, message: EmailMessage) -> list[str]:
        body = self.build_payload(message)
        try:
            if self._http_client is not None:
                response = await self._post(self._http_client, body)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await self._post(client, body)
        except httpx.TimeoutException as e:
            logger.warning(f"Brevo request timed out: {e}")
            raise BrevoError(f"Timeout: {e}") from e
        except httpx.TransportError as e:
            logger.warning(f"Brevo transport error: {e}")
            raise BrevoError(f"Transport error: {e}") from e

        if response.status_code >= 300:
            context = _safe_json(response)
            logger.error(
                f"Brevo rejected email: HTTP {response.status_code} {context}"
            )
            raise BrevoError(
                f"HTTP {response.status_code}",
                status_code=response.status_code,
                context=context,
            )

        data = _safe_json(response)
        if not isinstance(data, dict):
            return []
        if data.get("messageIds"):
            return [str(i) for i in data["messageIds"]]
        if data.get("messageId"):
            return [str(data["messageId"])]
        return []


def _safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None
