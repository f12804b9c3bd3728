"""Email enrichment collaborator: attaches addresses to validated people."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

import httpx
from pydantic import BaseModel

from leadscout.config import Settings
from leadscout.models.research import PersonContact
from leadscout.services.research.errors import EnrichmentError

logger = logging.getLogger(__name__)


class EmailEnrichment(Protocol):
    """Given people and a domain, returns the same people with ``emails`` filled in."""

    async def enrich(self, *, people: Sequence[PersonContact], domain: str) -> list[PersonContact]:
        ...


class _EnrichmentResponse(BaseModel):
    people: list[PersonContact]


class HttpEmailEnrichmentClient:
    """Posts ``{people, domain}`` to an enrichment webhook."""

    def __init__(
        self,
        url: str,
        *,
        api_key: str | None = None,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not url:
            raise ValueError("EMAIL_ENRICHMENT_URL is required to create an enrichment client.")
        self._url = url
        self._api_key = api_key
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings) -> "HttpEmailEnrichmentClient":
        return cls(
            settings.email_enrichment_url or "",
            api_key=settings.email_enrichment_api_key,
            timeout=settings.email_enrichment_timeout_seconds,
        )

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http.aclose()

    async def enrich(self, *, people: Sequence[PersonContact], domain: str) -> list[PersonContact]:
        if not people:
            return []
        payload = {
            "people": [{"name": person.name, "role": person.role} for person in people],
            "domain": domain,
        }
        headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}

        try:
            response = await self._http.post(self._url, json=payload, headers=headers)
        except httpx.TimeoutException as exc:
            raise EnrichmentError("Email enrichment timed out.", code="504_ENRICHMENT_TIMEOUT") from exc
        except httpx.HTTPError as exc:
            raise EnrichmentError(f"HTTP error calling enrichment: {exc}", code="502_ENRICHMENT_UPSTREAM") from exc

        if response.status_code >= 400:
            raise EnrichmentError(
                f"Email enrichment failed: {response.status_code}",
                code="502_ENRICHMENT_UPSTREAM",
            )
        try:
            parsed = _EnrichmentResponse.model_validate(response.json())
        except ValueError as exc:
            raise EnrichmentError("Unexpected enrichment response schema.", code="502_ENRICHMENT_SCHEMA") from exc

        logger.info(
            "enrichment.complete",
            extra={
                "domain": domain,
                "requested": len(people),
                "with_email": sum(1 for person in parsed.people if person.emails),
            },
        )
        return parsed.people


def reachable(people: Sequence[PersonContact]) -> list[PersonContact]:
    """People with at least one email address."""
    return [person for person in people if person.emails]
