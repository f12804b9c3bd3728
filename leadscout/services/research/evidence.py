"""Evidence context builders and the evidence-sufficiency guard."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from leadscout.models.research import EvidenceRecord, ExtractionVerdict
from leadscout.observability.metrics import metrics

logger = logging.getLogger(__name__)

DEFAULT_MIN_EVIDENCE_CHARS = 100


def summary_context(records: Iterable[EvidenceRecord]) -> str:
    """Title/content blocks, used for metadata and revalidation extraction."""
    return "\n\n".join(
        f"{record.title or 'No title'}\n{record.content}" for record in records if not record.is_empty()
    )


def sourced_context(records: Iterable[EvidenceRecord]) -> str:
    """Blocks that keep each hit's URL so the extractor can check domain ties."""
    return "\n\n---\n\n".join(
        f"Source: {record.title or 'No title'}\nURL: {record.url or 'No URL'}\n{record.content}"
        for record in records
        if not record.is_empty()
    )


@dataclass(frozen=True)
class GuardedExtraction:
    """An extraction verdict paired with the size of the text that backs it."""

    verdict: ExtractionVerdict
    context_chars: int
    source: str
    rejected: bool = False

    @property
    def people(self):
        return self.verdict.people


class EvidenceGuard:
    """Discards extracted people whose backing evidence is too thin to trust."""

    def __init__(self, min_chars: int = DEFAULT_MIN_EVIDENCE_CHARS) -> None:
        if min_chars < 0:
            raise ValueError("min_chars must be >= 0")
        self.min_chars = min_chars

    def is_sufficient(self, context: str | int) -> bool:
        length = context if isinstance(context, int) else len(context)
        return length >= self.min_chars

    def apply(self, verdict: ExtractionVerdict, context: str, *, source: str) -> GuardedExtraction:
        context_chars = len(context)
        if self.is_sufficient(context_chars) or not verdict.people:
            return GuardedExtraction(verdict=verdict, context_chars=context_chars, source=source)

        metrics.increment("guard.rejected", tags={"source": source})
        logger.warning(
            "guard.rejected",
            extra={
                "source": source,
                "context_chars": context_chars,
                "min_chars": self.min_chars,
                "discarded": len(verdict.people),
            },
        )
        emptied = verdict.model_copy(update={"people": []})
        return GuardedExtraction(verdict=emptied, context_chars=context_chars, source=source, rejected=True)
