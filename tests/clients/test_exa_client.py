from __future__ import annotations

import json

import httpx
import pytest

from leadscout.clients.exa import (
    ExaClient,
    ExaError,
    ExaRateLimitError,
    ExaSchemaError,
    ExaTimeoutError,
)


def _client(handler) -> ExaClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://api.exa.test")
    return ExaClient("test-key", http_client=http)


@pytest.mark.asyncio
async def test_search_and_contents_posts_expected_payload():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"results": [{"title": "Acme", "url": "https://acme.io", "text": "hi"}]})

    async with _client(handler) as client:
        results = await client.search_and_contents(query='"acme.io" CEO', num_results=3, max_characters=1500)

    assert results == [{"title": "Acme", "url": "https://acme.io", "text": "hi"}]
    request = seen[0]
    assert request.url.path == "/search"
    assert request.headers["x-api-key"] == "test-key"
    body = json.loads(request.content)
    assert body["query"] == '"acme.io" CEO'
    assert body["numResults"] == 3
    assert body["contents"] == {"text": {"maxCharacters": 1500}}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "error_type"),
    [(429, ExaRateLimitError), (504, ExaTimeoutError), (408, ExaTimeoutError)],
)
async def test_status_codes_map_to_typed_errors(status, error_type):
    async with _client(lambda request: httpx.Response(status)) as client:
        with pytest.raises(error_type):
            await client.search_and_contents(query="acme", num_results=1, max_characters=100)


@pytest.mark.asyncio
async def test_upstream_error_carries_provider_code():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            500,
            json={"message": "internal"},
            headers={"x-exa-error-code": "EXA_INTERNAL"},
        )

    async with _client(handler) as client:
        with pytest.raises(ExaError) as excinfo:
            await client.search_and_contents(query="acme", num_results=1, max_characters=100)

    assert excinfo.value.code == "EXA_INTERNAL"
    assert "internal" in str(excinfo.value)


@pytest.mark.asyncio
async def test_missing_results_raises_schema_error():
    async with _client(lambda request: httpx.Response(200, json={"data": []})) as client:
        with pytest.raises(ExaSchemaError):
            await client.search_and_contents(query="acme", num_results=1, max_characters=100)


@pytest.mark.asyncio
async def test_transport_timeout_raises_timeout_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    async with _client(handler) as client:
        with pytest.raises(ExaTimeoutError):
            await client.search_and_contents(query="acme", num_results=1, max_characters=100)


def test_client_requires_api_key():
    with pytest.raises(ValueError):
        ExaClient("")
