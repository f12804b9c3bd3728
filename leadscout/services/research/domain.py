"""Canonical domain extraction and resolution checks."""

from __future__ import annotations

import asyncio
import logging
import re
import socket
from typing import Protocol

import tldextract

from leadscout.services.research.errors import InvalidInputError, UnresolvableDomainError

logger = logging.getLogger(__name__)

# Bundled public-suffix snapshot only; never fetch the list at runtime.
_EXTRACT = tldextract.TLDExtract(suffix_list_urls=(), cache_dir=None)

_SCHEME = re.compile(r"^(?:[a-z][a-z0-9+.\-]*://)+")
_PORT = re.compile(r":\d*$")
_PATH_SPLIT = re.compile(r"[/?#]")
_TRIM_CHARS = ".,;:!'\"()[]<>{}` "
_DOMAIN_SHAPE = re.compile(
    r"^(?=.{4,253}$)(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z][a-z0-9-]{0,61}[a-z0-9]$"
)
_MAX_PASSES = 8


class DomainResolver(Protocol):
    """Answers whether a domain exists on the public internet."""

    async def resolve(self, domain: str) -> bool:
        ...


class DnsDomainResolver:
    """Resolver backed by the event loop's getaddrinfo."""

    def __init__(self, *, timeout: float = 5.0, port: int = 443) -> None:
        self._timeout = timeout
        self._port = port

    async def resolve(self, domain: str) -> bool:
        loop = asyncio.get_running_loop()
        try:
            infos = await asyncio.wait_for(
                loop.getaddrinfo(domain, self._port, type=socket.SOCK_STREAM),
                timeout=self._timeout,
            )
        except (OSError, asyncio.TimeoutError) as exc:
            logger.info(
                "domain.resolve_failed",
                extra={"domain": domain, "error": type(exc).__name__},
            )
            return False
        return bool(infos)


def normalize_domain(query: str | None) -> str:
    """Reduce free text or a URL to a lowercase registrable domain.

    Strings without a domain-shaped token come back cleaned but otherwise
    intact so callers can report them. Applying the function twice yields
    the same value as applying it once.
    """
    text = (query or "").strip().lower()
    for _ in range(_MAX_PASSES):
        normalized = _normalize_once(text)
        if normalized == text:
            break
        text = normalized
    return text


def is_domain_shaped(value: str) -> bool:
    """True when ``value`` looks like ``label.suffix`` with a known public suffix."""
    if not value or not _DOMAIN_SHAPE.match(value):
        return False
    parts = _EXTRACT(value)
    return bool(parts.domain and parts.suffix)


def company_slug(domain: str) -> str:
    """Registrable label without its suffix, e.g. ``datacurve`` for ``datacurve.ai``."""
    parts = _EXTRACT(domain)
    return parts.domain or domain.split(".", 1)[0]


def website_url(domain: str) -> str:
    return f"https://{domain}"


def favicon_url(domain: str) -> str:
    return f"https://www.google.com/s2/favicons?domain={domain}&sz=128"


class DomainValidator:
    """Turns the inbound query into a canonical domain or a typed failure."""

    def __init__(self, resolver: DomainResolver) -> None:
        self._resolver = resolver

    async def validate(self, query: str | None) -> str:
        if not query or not query.strip():
            raise InvalidInputError("Query is required", code="400_EMPTY_QUERY")

        domain = normalize_domain(query)
        if not is_domain_shaped(domain):
            raise InvalidInputError("No valid domain found in query", code="400_INVALID_DOMAIN")

        if not await self._resolver.resolve(domain):
            raise UnresolvableDomainError(
                f"Domain {domain} does not resolve",
                code="400_UNRESOLVABLE_DOMAIN",
            )
        logger.info("domain.validated", extra={"domain": domain})
        return domain


def _normalize_once(text: str) -> str:
    tokens = text.split()
    if not tokens:
        return ""
    hosts = [_clean_host(token) for token in tokens]
    for host in hosts:
        if is_domain_shaped(host):
            return _registrable(host)
    if len(hosts) == 1:
        return hosts[0]
    return " ".join(tokens)


def _registrable(host: str) -> str:
    parts = _EXTRACT(host)
    if parts.domain and parts.suffix:
        return f"{parts.domain}.{parts.suffix}"
    return host


def _clean_host(token: str) -> str:
    previous = None
    text = token
    while text != previous:
        previous = text
        text = text.strip(_TRIM_CHARS)
        text = _SCHEME.sub("", text)
        text = _PATH_SPLIT.split(text, maxsplit=1)[0]
        text = text.rsplit("@", 1)[-1]
        text = _PORT.sub("", text)
        text = text.strip(_TRIM_CHARS)
        if text.startswith("www."):
            text = text[4:]
    return text
