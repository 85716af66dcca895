"""Idempotency guard / store 单元测试。"""

import uuid

import pytest
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient

from src.core.domain.exceptions import ValidationError
from src.modules.idempotency.application.guard import (
    IDEMPOTENCY_KEY_FIELD,
    INVALID_KEY_MESSAGE,
    IdempotencyGuard,
    IdempotentPayload,
    ValidationIssues,
    read_request_payload,
)
from src.modules.idempotency.infrastructure.store import IdempotencyStore
from src.modules.magic_links.application.commands import RequestMagicLinkInput

pytestmark = pytest.mark.anyio

HASH_KEY = "0123456789abcdef" * 4


@pytest.fixture
def guard() -> IdempotencyGuard:
    return IdempotencyGuard()


class TestKeyFormat:
    @pytest.mark.parametrize(
        "key",
        [
            str(uuid.uuid4()),
            str(uuid.uuid4()).upper(),
            HASH_KEY,
            HASH_KEY.upper(),
        ],
    )
    def test_accepts_uuid_and_hex_digest(self, guard, key):
        result = guard.extract_and_validate({IDEMPOTENCY_KEY_FIELD: key})

        assert isinstance(result, IdempotentPayload)
        assert result.idempotency_key == key

    @pytest.mark.parametrize(
        "key",
        [
            "0123456789",
            "",
            HASH_KEY + "0",
            HASH_KEY + "\n",
            str(uuid.uuid4()) + "\n",
            str(uuid.uuid4()).replace("-", "_"),
        ],
    )
    def test_rejects_malformed_keys(self, guard, key):
        result = guard.extract_and_validate({IDEMPOTENCY_KEY_FIELD: key})

        assert isinstance(result, ValidationIssues)
        assert result.issues == {IDEMPOTENCY_KEY_FIELD: [INVALID_KEY_MESSAGE]}

    @pytest.mark.parametrize("data", [{}, {IDEMPOTENCY_KEY_FIELD: 123}])
    def test_missing_or_non_string_key(self, guard, data):
        result = guard.extract_and_validate(data)

        assert isinstance(result, ValidationIssues)
        assert IDEMPOTENCY_KEY_FIELD in result.issues


class TestSchemaValidation:
    def test_returns_parsed_output(self, guard):
        result = guard.extract_and_validate(
            {
                IDEMPOTENCY_KEY_FIELD: HASH_KEY,
                "email": "rider@example.com",
                "redirectUrl": "https://myeurotaxi.com/",
            },
            RequestMagicLinkInput,
        )

        assert isinstance(result, IdempotentPayload)
        assert result.output.email == "rider@example.com"
        assert result.output.redirect_url == "https://myeurotaxi.com/"

    def test_merges_key_and_field_issues(self, guard):
        result = guard.extract_and_validate(
            {IDEMPOTENCY_KEY_FIELD: "nope", "email": "not-an-email"},
            RequestMagicLinkInput,
        )

        assert isinstance(result, ValidationIssues)
        assert set(result.issues) == {IDEMPOTENCY_KEY_FIELD, "email", "redirectUrl"}

    def test_to_exception(self):
        issues = ValidationIssues({IDEMPOTENCY_KEY_FIELD: [INVALID_KEY_MESSAGE]})

        error = issues.to_exception()

        assert isinstance(error, ValidationError)
        assert error.issues == issues.issues
        assert error.http_status_code == 400


class TestReadRequestPayload:
    @pytest.fixture
    def app(self) -> FastAPI:
        app = FastAPI()

        @app.post("/echo")
        async def echo(request: Request):
            try:
                return await read_request_payload(request)
            except ValidationError as e:
                return {"issues": e.issues}

        return app

    async def _post(self, app: FastAPI, **kwargs):
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as client:
            return (await client.post("/echo", **kwargs)).json()

    async def test_reads_form_data(self, app):
        data = await self._post(
            app, data={IDEMPOTENCY_KEY_FIELD: HASH_KEY, "email": "a@b.cz"}
        )

        assert data == {IDEMPOTENCY_KEY_FIELD: HASH_KEY, "email": "a@b.cz"}

    async def test_reads_json_body(self, app):
        data = await self._post(app, json={IDEMPOTENCY_KEY_FIELD: HASH_KEY})

        assert data == {IDEMPOTENCY_KEY_FIELD: HASH_KEY}

    async def test_empty_body(self, app):
        assert await self._post(app) == {}

    async def test_rejects_non_object_json(self, app):
        data = await self._post(app, json=[1, 2, 3])

        assert data == {"issues": {"__root__": ["Expected a JSON object"]}}


class TestIdempotencyStore:
    async def test_first_claim_wins(self, memory_cache):
        store = IdempotencyStore(memory_cache, ttl_seconds=60)

        assert await store.claim("magic-link", HASH_KEY) is True
        assert await store.claim("magic-link", HASH_KEY) is False
        assert await store.claim("other", HASH_KEY) is True

    async def test_key_is_case_insensitive(self, redis_cache):
        store = IdempotencyStore(redis_cache, ttl_seconds=60)

        assert await store.claim("magic-link", HASH_KEY) is True
        assert await store.claim("magic-link", HASH_KEY.upper()) is False

    async def test_release_allows_new_claim(self, memory_cache):
        store = IdempotencyStore(memory_cache, ttl_seconds=60)
        await store.claim("magic-link", HASH_KEY)

        await store.release("magic-link", HASH_KEY)

        assert await store.claim("magic-link", HASH_KEY) is True

    async def test_claim_expires(self, memory_cache, monotonic):
        store = IdempotencyStore(memory_cache, ttl_seconds=60)
        await store.claim("magic-link", HASH_KEY)

        monotonic.advance(61)

        assert await store.claim("magic-link", HASH_KEY) is True
