"""Constrained-output extraction of company metadata and leadership candidates."""

from __future__ import annotations

import logging
import re
import unicodedata
from collections.abc import Iterable, Sequence

from leadscout.models.research import CompanyMetadata, ExtractionVerdict, PersonCandidate
from leadscout.services.research import policy
from leadscout.services.research.llm import ResearchModel

logger = logging.getLogger(__name__)

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_person_name(name: str) -> str:
    """Identity key for a person: casefolded, accents and punctuation stripped."""
    decomposed = unicodedata.normalize("NFKD", name or "")
    ascii_folded = "".join(char for char in decomposed if not unicodedata.combining(char))
    cleaned = _NON_WORD.sub(" ", ascii_folded.casefold())
    return _WHITESPACE.sub(" ", cleaned).strip()


def dedupe_candidates(people: Iterable[PersonCandidate]) -> list[PersonCandidate]:
    """Collapse candidates sharing a normalized name; the later entry wins."""
    by_name: dict[str, PersonCandidate] = {}
    for person in people:
        key = normalize_person_name(person.name)
        if not key or not person.role.strip():
            continue
        by_name[key] = person
    return list(by_name.values())


class MetadataExtractor:
    """Evidence text in, ``CompanyMetadata`` out. No confidence scoring here."""

    def __init__(self, model: ResearchModel, *, model_name: str) -> None:
        self._model = model
        self._model_name = model_name

    async def extract(self, domain: str, context: str) -> CompanyMetadata:
        metadata = await self._model.extract(
            prompt=policy.metadata_prompt(domain, context),
            schema=CompanyMetadata,
            model=self._model_name,
        )
        if not metadata.name.strip():
            metadata = metadata.model_copy(update={"name": domain})
        logger.info(
            "extract.metadata",
            extra={"domain": domain, "company": metadata.name, "known_fields": metadata.known_fields()},
        )
        return metadata


class PeopleExtractor:
    """Evidence text in, ``ExtractionVerdict`` out."""

    def __init__(self, model: ResearchModel, *, model_name: str) -> None:
        self._model = model
        self._model_name = model_name

    async def extract(self, domain: str, company_name: str | None, context: str) -> ExtractionVerdict:
        verdict = await self._model.extract(
            prompt=policy.people_extraction_prompt(domain, company_name, context),
            schema=ExtractionVerdict,
            model=self._model_name,
        )
        return self._finalize(verdict, domain=domain, source="initial")

    async def reextract(
        self,
        domain: str,
        prior: Sequence[PersonCandidate],
        validation_context: str,
        original_context: str,
    ) -> ExtractionVerdict:
        verdict = await self._model.extract(
            prompt=policy.revalidation_extraction_prompt(domain, prior, validation_context, original_context),
            schema=ExtractionVerdict,
            model=self._model_name,
        )
        return self._finalize(verdict, domain=domain, source="revalidation")

    @staticmethod
    def _finalize(verdict: ExtractionVerdict, *, domain: str, source: str) -> ExtractionVerdict:
        people = dedupe_candidates(verdict.people)
        logger.info(
            "extract.people",
            extra={
                "domain": domain,
                "source": source,
                "people": len(people),
                "confident": sum(1 for p in people if p.confidence.value != "low"),
                "needs_more_search": verdict.needs_more_search,
                "reasoning": verdict.reasoning[:300],
            },
        )
        return verdict.model_copy(update={"people": people})
