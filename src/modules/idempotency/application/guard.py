"""Idempotency key guard for mutation requests.

只做语法校验并把 key 交给调用方，不做去重（去重见 IdempotencyStore）。
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from starlette.requests import Request

from src.core.domain.exceptions import ValidationError

IDEMPOTENCY_KEY_FIELD = "idempotencyKey"
INVALID_KEY_MESSAGE = "Invalid idempotency key"

_UUID_PATTERN = re.compile(
    r"[0-9a-f]{8}(-[0-9a-f]{4}){3}-[0-9a-f]{12}", re.IGNORECASE
)
_HASH_PATTERN = re.compile(r"[0-9a-f]{64}", re.IGNORECASE)

_FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


@dataclass(frozen=True)
class IdempotentPayload:
    idempotency_key: str
    output: Any = None


@dataclass(frozen=True)
class ValidationIssues:
    issues: dict[str, list[str]] = field(default_factory=dict)

    def to_exception(self) -> ValidationError:
        return ValidationError(self.issues)


def is_valid_idempotency_key(value: object) -> bool:
    """UUID (any case) or a 64 char hex digest."""
    if not isinstance(value, str):
        return False
    return bool(_UUID_PATTERN.fullmatch(value) or _HASH_PATTERN.fullmatch(value))


def _schema_issues(error: PydanticValidationError) -> dict[str, list[str]]:
    issues: dict[str, list[str]] = {}
    for item in error.errors():
        path = ".".join(str(part) for part in item["loc"]) or "__root__"
        issues.setdefault(path, []).append(item["msg"])
    return issues


class IdempotencyGuard:
    """Extracts the client idempotency key and validates it with the payload."""

    key_field = IDEMPOTENCY_KEY_FIELD

    def extract_and_validate(
        self,
        data: Mapping[str, Any],
        schema: type[BaseModel] | None = None,
    ) -> IdempotentPayload | ValidationIssues:
        """Validate key and payload together so the caller gets one issue set.

        Args:
            data: raw request fields
            schema: optional model for the remaining fields

        Returns:
            IdempotentPayload on success, otherwise ValidationIssues
        """
        raw_key = data.get(self.key_field)
        key = raw_key if isinstance(raw_key, str) else ""

        issues: dict[str, list[str]] = {}
        output: Any = dict(data)
        if schema is not None:
            fields = {k: v for k, v in data.items() if k != self.key_field}
            try:
                output = schema.model_validate(fields)
            except PydanticValidationError as e:
                issues.update(_schema_issues(e))

        if not is_valid_idempotency_key(key):
            issues.setdefault(self.key_field, []).append(INVALID_KEY_MESSAGE)

        if issues:
            return ValidationIssues(issues)
        return IdempotentPayload(idempotency_key=key, output=output)


async def read_request_payload(request: Request) -> dict[str, Any]:
    """Read the mutation fields from a form post or a JSON body."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(_FORM_CONTENT_TYPES):
        form = await request.form()
        return {key: value for key, value in form.items() if isinstance(value, str)}

    body = await request.body()
    if not body:
        return {}
    try:
        data = await request.json()
    except ValueError as e:
        raise ValidationError({"__root__": ["Malformed JSON body"]}) from e
    if not isinstance(data, dict):
        raise ValidationError({"__root__": ["Expected a JSON object"]})
    return data
