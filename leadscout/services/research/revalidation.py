"""Second, targeted search-and-extract pass for uncertain leadership results."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from leadscout.models.research import Confidence, ExtractionVerdict, PersonCandidate
from leadscout.observability.metrics import metrics
from leadscout.services.research import policy
from leadscout.services.research.evidence import EvidenceGuard, GuardedExtraction, summary_context
from leadscout.services.research.extractors import PeopleExtractor
from leadscout.services.research.tool_loop import ToolLoop

logger = logging.getLogger(__name__)


def needs_revalidation(verdict: ExtractionVerdict) -> bool:
    """True when the extractor asked for more search or nobody scored above low.

    An empty candidate list counts as uniformly low.
    """
    return verdict.needs_more_search or all(p.confidence is Confidence.LOW for p in verdict.people)


def confident_count(people: Iterable[PersonCandidate]) -> int:
    return sum(1 for person in people if person.confidence is not Confidence.LOW)


def choose_winner(original: GuardedExtraction, revalidated: GuardedExtraction | None) -> GuardedExtraction:
    """Keep the revalidated set only if it has strictly more non-low candidates."""
    if revalidated is None or revalidated.rejected:
        return original
    if confident_count(revalidated.people) > confident_count(original.people):
        return revalidated
    return original


class RevalidationLoop:
    def __init__(
        self,
        tool_loop: ToolLoop,
        extractor: PeopleExtractor,
        guard: EvidenceGuard,
        *,
        max_round_trips: int,
    ) -> None:
        self._loop = tool_loop
        self._extractor = extractor
        self._guard = guard
        self._max_round_trips = max_round_trips

    async def run(self, domain: str, original: GuardedExtraction, original_context: str) -> GuardedExtraction:
        metrics.increment("revalidation.triggered")
        transcript = await self._loop.run(
            stage="revalidation",
            user_prompt=policy.revalidation_prompt(domain, original.people, original.verdict.reasoning),
            max_round_trips=self._max_round_trips,
        )
        validation_context = summary_context(transcript.evidence)
        if not self._guard.is_sufficient(validation_context):
            logger.info(
                "revalidation.insufficient_context",
                extra={"domain": domain, "context_chars": len(validation_context)},
            )
            return original

        verdict = await self._extractor.reextract(domain, original.people, validation_context, original_context)
        revalidated = self._guard.apply(verdict, validation_context, source="revalidation")
        winner = choose_winner(original, revalidated)
        adopted = winner is revalidated
        if adopted:
            metrics.increment("revalidation.adopted")
        logger.info(
            "revalidation.complete",
            extra={
                "domain": domain,
                "adopted": adopted,
                "original_confident": confident_count(original.people),
                "revalidated_confident": confident_count(revalidated.people),
            },
        )
        return winner
