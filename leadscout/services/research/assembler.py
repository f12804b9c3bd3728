"""Builds the externally consumed result from metadata and validated people."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from leadscout.models.research import (
    CompanyMetadata,
    Confidence,
    PersonCandidate,
    PersonContact,
    PipelineResult,
)
from leadscout.services.research.domain import favicon_url, website_url
from leadscout.services.research.evidence import EvidenceGuard, GuardedExtraction

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_LIMIT = 3


def select_people(
    people: Sequence[PersonCandidate],
    *,
    fallback_limit: int = DEFAULT_FALLBACK_LIMIT,
) -> list[PersonCandidate]:
    """High and medium candidates, or the first few low ones when there are none."""
    confident = [person for person in people if person.confidence is not Confidence.LOW]
    if confident:
        return confident
    return list(people[: max(fallback_limit, 0)])


class ResultAssembler:
    def __init__(self, guard: EvidenceGuard, *, fallback_limit: int = DEFAULT_FALLBACK_LIMIT) -> None:
        self._guard = guard
        self._fallback_limit = fallback_limit

    def select(self, extraction: GuardedExtraction) -> list[PersonCandidate]:
        people = select_people(extraction.people, fallback_limit=self._fallback_limit)
        # No path may emit people backed by less evidence than the guard allows.
        if people and not self._guard.is_sufficient(extraction.context_chars):
            logger.warning(
                "assemble.ungrounded_people_dropped",
                extra={"context_chars": extraction.context_chars, "people": len(people)},
            )
            return []
        return people

    def assemble(
        self,
        domain: str,
        metadata: CompanyMetadata,
        people: Sequence[PersonContact],
    ) -> PipelineResult:
        return PipelineResult(
            company=metadata.name or domain,
            domain=domain,
            website=website_url(domain),
            favicon=favicon_url(domain),
            description=metadata.description,
            tech_stack=metadata.tech_stack,
            industry=metadata.industry,
            year_founded=metadata.year_founded,
            headquarters=metadata.headquarters,
            revenue=metadata.revenue,
            funding=metadata.funding,
            employee_count_min=metadata.employee_count_min,
            employee_count_max=metadata.employee_count_max,
            people=list(people),
        )


def to_contacts(people: Sequence[PersonCandidate]) -> list[PersonContact]:
    """Drop confidence before people leave the pipeline."""
    return [PersonContact(name=person.name, role=person.role) for person in people]
