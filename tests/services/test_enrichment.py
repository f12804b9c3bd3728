from __future__ import annotations

import json

import httpx
import pytest

from leadscout.models.research import PersonContact
from leadscout.services.enrichment import HttpEmailEnrichmentClient, reachable
from leadscout.services.research.errors import EnrichmentError, ErrorKind

PEOPLE = [PersonContact(name="Jane Doe", role="CEO"), PersonContact(name="John Roe", role="CTO")]


def _client(handler) -> HttpEmailEnrichmentClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpEmailEnrichmentClient("https://enrich.test/hook", api_key="secret", http_client=http)


@pytest.mark.asyncio
async def test_enrich_posts_people_and_domain():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "people": [
                    {"name": "Jane Doe", "role": "CEO", "emails": ["jane@acme.io"]},
                    {"name": "John Roe", "role": "CTO", "emails": []},
                ]
            },
        )

    enriched = await _client(handler).enrich(people=PEOPLE, domain="acme.io")

    body = json.loads(seen[0].content)
    assert body == {
        "people": [{"name": "Jane Doe", "role": "CEO"}, {"name": "John Roe", "role": "CTO"}],
        "domain": "acme.io",
    }
    assert seen[0].headers["Authorization"] == "Bearer secret"
    assert [p.name for p in reachable(enriched)] == ["Jane Doe"]


@pytest.mark.asyncio
async def test_enrich_skips_call_for_no_people():
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - must not be called
        raise AssertionError("unexpected request")

    assert await _client(handler).enrich(people=[], domain="acme.io") == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("response", "code"),
    [
        (httpx.Response(503), "502_ENRICHMENT_UPSTREAM"),
        (httpx.Response(200, json={"unexpected": True}), "502_ENRICHMENT_SCHEMA"),
        (httpx.Response(200, text="not json"), "502_ENRICHMENT_SCHEMA"),
    ],
)
async def test_enrich_failures_are_typed(response, code):
    with pytest.raises(EnrichmentError) as excinfo:
        await _client(lambda request: response).enrich(people=PEOPLE, domain="acme.io")

    assert excinfo.value.code == code
    assert excinfo.value.kind is ErrorKind.ENRICHMENT
    assert excinfo.value.http_status == 500


@pytest.mark.asyncio
async def test_enrich_timeout_maps_to_timeout_code():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(EnrichmentError) as excinfo:
        await _client(handler).enrich(people=PEOPLE, domain="acme.io")

    assert excinfo.value.code == "504_ENRICHMENT_TIMEOUT"
