"""Error taxonomy and recovery policy for research runs."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Final


class ErrorKind(str, Enum):
    INVALID_INPUT = "invalid-input"
    UNRESOLVABLE_DOMAIN = "unresolvable-domain"
    NO_LEADERSHIP = "no-leadership"
    SEARCH_PROVIDER = "search-provider"
    MODEL_PROVIDER = "model-provider"
    EXTRACTION = "extraction"
    ENRICHMENT = "enrichment"
    PERSISTENCE = "persistence"
    CANCELLED = "cancelled"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class ErrorPolicy:
    """Whether a failure degrades to an empty value, and how it surfaces over HTTP."""

    recoverable: bool
    http_status: int


ERROR_POLICY: Final[dict[ErrorKind, ErrorPolicy]] = {
    ErrorKind.INVALID_INPUT: ErrorPolicy(recoverable=False, http_status=400),
    ErrorKind.UNRESOLVABLE_DOMAIN: ErrorPolicy(recoverable=False, http_status=400),
    ErrorKind.NO_LEADERSHIP: ErrorPolicy(recoverable=False, http_status=404),
    # Search failures become an empty evidence list at the tool boundary.
    ErrorKind.SEARCH_PROVIDER: ErrorPolicy(recoverable=True, http_status=502),
    ErrorKind.MODEL_PROVIDER: ErrorPolicy(recoverable=False, http_status=500),
    ErrorKind.EXTRACTION: ErrorPolicy(recoverable=False, http_status=500),
    ErrorKind.ENRICHMENT: ErrorPolicy(recoverable=False, http_status=500),
    # Persistence failures are logged and never reach the caller.
    ErrorKind.PERSISTENCE: ErrorPolicy(recoverable=True, http_status=500),
    ErrorKind.CANCELLED: ErrorPolicy(recoverable=False, http_status=499),
    ErrorKind.UNEXPECTED: ErrorPolicy(recoverable=False, http_status=500),
}


class PipelineError(RuntimeError):
    """Base exception for every failure inside a research run."""

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(self, message: str, code: str | None = None, *, kind: ErrorKind | None = None) -> None:
        super().__init__(message)
        if kind is not None:
            self.kind = kind
        self.code = code or self.kind.value.upper().replace("-", "_")

    @property
    def policy(self) -> ErrorPolicy:
        return ERROR_POLICY[self.kind]

    @property
    def recoverable(self) -> bool:
        return self.policy.recoverable

    @property
    def http_status(self) -> int:
        return self.policy.http_status


class InvalidInputError(PipelineError):
    """Raised when the query is empty or holds no domain-shaped token."""

    kind = ErrorKind.INVALID_INPUT


class UnresolvableDomainError(PipelineError):
    """Raised when a well-formed domain does not resolve."""

    kind = ErrorKind.UNRESOLVABLE_DOMAIN


class NoLeadershipError(PipelineError):
    """Raised when neither the company nor its leadership could be identified."""

    kind = ErrorKind.NO_LEADERSHIP


class SearchProviderError(PipelineError):
    """Wraps a search provider failure before it is recovered to an empty list."""

    kind = ErrorKind.SEARCH_PROVIDER


class ModelProviderError(PipelineError):
    """Raised when the language model provider call itself fails."""

    kind = ErrorKind.MODEL_PROVIDER


class ExtractionError(PipelineError):
    """Raised when a constrained-output extraction returns nothing usable."""

    kind = ErrorKind.EXTRACTION


class EnrichmentError(PipelineError):
    """Raised when the email enrichment collaborator fails."""

    kind = ErrorKind.ENRICHMENT


class PersistenceError(PipelineError):
    """Raised by repositories; always swallowed by the result sink."""

    kind = ErrorKind.PERSISTENCE


class PipelineCancelledError(PipelineError):
    """Raised at a stage boundary when the caller has gone away."""

    kind = ErrorKind.CANCELLED
