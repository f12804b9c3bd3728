"""Web search capability handed to the research model."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any, Protocol

import httpx

from leadscout.clients.exa import ExaError, ExaRateLimitError, ExaTimeoutError
from leadscout.core.backoff import exponential_backoff
from leadscout.models.research import EvidenceRecord
from leadscout.observability.metrics import metrics
from leadscout.services.research.errors import SearchProviderError

logger = logging.getLogger(__name__)

SEARCH_TOOL_NAME = "search"
SEARCH_TOOL_DESCRIPTION = (
    "Search the web. Always include the domain in quotes for company-specific searches."
)
CONTENT_FIELDS = ("text", "content", "summary", "snippet")

AsyncSleepFn = Callable[[float], Awaitable[None]]


class SearchProvider(Protocol):
    """Subset of search client behavior used by the tool."""

    async def search_and_contents(
        self, *, query: str, num_results: int, max_characters: int
    ) -> list[dict[str, Any]]:
        ...


def normalize_results(
    raw_results: Sequence[Mapping[str, Any]],
    *,
    max_chars: int,
    limit: int | None = None,
) -> list[EvidenceRecord]:
    """Convert raw provider hits into bounded evidence records."""
    records: list[EvidenceRecord] = []
    for result in raw_results:
        title = str(result.get("title") or "").strip()
        url = str(result.get("url") or result.get("id") or "").strip()
        content = ""
        for field in CONTENT_FIELDS:
            value = result.get(field)
            if isinstance(value, str) and value.strip():
                content = value.strip()
                break
        record = EvidenceRecord(title=title, url=url, content=content[:max_chars])
        if record.is_empty():
            continue
        records.append(record)
        if limit is not None and len(records) >= limit:
            break
    return records


class SearchTool:
    """Best-effort search: provider failures and timeouts come back as an empty list."""

    name = SEARCH_TOOL_NAME

    def __init__(
        self,
        provider: SearchProvider,
        *,
        timeout_seconds: float = 15.0,
        max_snippet_chars: int = 1500,
        default_results: int = 5,
        max_results: int = 10,
        max_attempts: int = 2,
        sleep: AsyncSleepFn | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._provider = provider
        self._timeout = timeout_seconds
        self._max_chars = max_snippet_chars
        self._default_results = default_results
        self._max_results = max(max_results, 1)
        self._max_attempts = max_attempts
        self._sleep = sleep or asyncio.sleep

    def definition(self) -> dict[str, Any]:
        """Function-tool schema advertised to the model."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": SEARCH_TOOL_DESCRIPTION,
                "parameters": {
                    "type": "object",
                    "properties": {
                        "query": {"type": "string", "description": "Search query"},
                        "numResults": {
                            "type": "integer",
                            "description": f"Number of results (default {self._default_results})",
                            "minimum": 1,
                            "maximum": self._max_results,
                        },
                    },
                    "required": ["query"],
                },
            },
        }

    async def search(self, query: str, num_results: int | None = None) -> list[EvidenceRecord]:
        query = (query or "").strip()
        if not query:
            return []
        count = min(max(num_results or self._default_results, 1), self._max_results)

        metrics.increment("search.calls")
        logger.info("search.request", extra={"query": query[:200], "num_results": count})
        try:
            raw = await self._fetch(query, count)
        except SearchProviderError as exc:
            if not exc.recoverable:
                raise
            metrics.increment("search.errors", tags={"code": exc.code})
            logger.warning("search.failed", extra={"query": query[:200], "code": exc.code, "error": str(exc)})
            return []

        records = normalize_results(raw, max_chars=self._max_chars, limit=count)
        logger.info("search.results", extra={"query": query[:200], "count": len(records)})
        return records

    async def _fetch(self, query: str, count: int) -> list[dict[str, Any]]:
        """Provider call under the tool's deadline; every failure surfaces as ``SearchProviderError``."""
        try:
            return await asyncio.wait_for(self._search_with_retries(query, count), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise SearchProviderError(f"Search timed out after {self._timeout}s", code="TIMEOUT") from exc
        except ExaError as exc:
            raise SearchProviderError(str(exc), code=exc.code) from exc
        except (httpx.HTTPError, OSError, ValueError) as exc:
            raise SearchProviderError(str(exc) or type(exc).__name__, code=type(exc).__name__) from exc

    async def _search_with_retries(self, query: str, count: int) -> list[dict[str, Any]]:
        for attempt, delay in exponential_backoff(max_attempts=self._max_attempts):
            try:
                return await self._provider.search_and_contents(
                    query=query,
                    num_results=count,
                    max_characters=self._max_chars,
                )
            except (ExaRateLimitError, ExaTimeoutError) as exc:
                if attempt >= self._max_attempts:
                    raise
                logger.warning(
                    "search.retry",
                    extra={
                        "code": exc.code,
                        "attempt": attempt,
                        "max_attempts": self._max_attempts,
                        "delay_ms": round(delay * 1000, 2),
                    },
                )
                await self._sleep(delay)
        raise ExaError("Unable to complete search after retries.")
