from __future__ import annotations

import pytest

from leadscout.services.research.domain import (
    DomainValidator,
    company_slug,
    favicon_url,
    is_domain_shaped,
    normalize_domain,
    website_url,
)
from leadscout.services.research.errors import (
    ErrorKind,
    InvalidInputError,
    UnresolvableDomainError,
)
from tests.helpers.fakes import StaticResolver


@pytest.mark.parametrize(
    ("query", "expected"),
    [
        ("https://www.datacurve.ai/careers?ref=x", "datacurve.ai"),
        ("datacurve.ai", "datacurve.ai"),
        ("HTTPS://WWW.Example.COM/", "example.com"),
        ("http://blog.example.co.uk/post#team", "example.co.uk"),
        ("find founder emails at datacurve.ai please", "datacurve.ai"),
        ("user@mail.acme.io:8080/path", "acme.io"),
        ("<https://stripe.com>,", "stripe.com"),
    ],
)
def test_normalize_domain_strips_url_noise(query: str, expected: str):
    assert normalize_domain(query) == expected


@pytest.mark.parametrize(
    "query",
    [
        "https://www.datacurve.ai/careers?ref=x",
        "www.www.example.com",
        "not a domain",
        "  Acme Corp  ",
        "http://http://example.com/a/b",
        "",
        "localhost:3000",
    ],
)
def test_normalize_domain_is_idempotent(query: str):
    once = normalize_domain(query)
    assert normalize_domain(once) == once


def test_is_domain_shaped_requires_known_suffix():
    assert is_domain_shaped("datacurve.ai")
    assert not is_domain_shaped("localhost")
    assert not is_domain_shaped("not a domain")
    assert not is_domain_shaped("example.notarealsuffix")


def test_derived_urls_use_canonical_domain():
    assert website_url("datacurve.ai") == "https://datacurve.ai"
    assert favicon_url("datacurve.ai") == "https://www.google.com/s2/favicons?domain=datacurve.ai&sz=128"
    assert company_slug("datacurve.ai") == "datacurve"


@pytest.mark.asyncio
async def test_validator_returns_canonical_domain():
    resolver = StaticResolver()
    validator = DomainValidator(resolver)

    domain = await validator.validate("https://www.datacurve.ai/careers?ref=x")

    assert domain == "datacurve.ai"
    assert resolver.calls == ["datacurve.ai"]


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["", "   ", None])
async def test_validator_rejects_empty_query(query):
    resolver = StaticResolver()

    with pytest.raises(InvalidInputError) as excinfo:
        await DomainValidator(resolver).validate(query)

    assert excinfo.value.code == "400_EMPTY_QUERY"
    assert resolver.calls == []


@pytest.mark.asyncio
async def test_validator_rejects_free_text_without_domain():
    resolver = StaticResolver()

    with pytest.raises(InvalidInputError) as excinfo:
        await DomainValidator(resolver).validate("not a domain")

    assert excinfo.value.kind is ErrorKind.INVALID_INPUT
    assert excinfo.value.http_status == 400
    assert resolver.calls == []


@pytest.mark.asyncio
async def test_validator_reports_unresolvable_domain():
    with pytest.raises(UnresolvableDomainError) as excinfo:
        await DomainValidator(StaticResolver(resolves=False)).validate("ghost-company.io")

    assert excinfo.value.code == "400_UNRESOLVABLE_DOMAIN"
    assert excinfo.value.http_status == 400
