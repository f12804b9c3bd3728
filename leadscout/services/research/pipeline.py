"""Research pipeline: domain in, company metadata and validated leadership out."""

from __future__ import annotations

import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Any

from leadscout.clients.exa import ExaClient
from leadscout.config import Settings, settings
from leadscout.models.research import CompanyMetadata, ExtractionVerdict, PipelineResult
from leadscout.observability.metrics import metrics
from leadscout.services.enrichment import EmailEnrichment, HttpEmailEnrichmentClient, reachable
from leadscout.services.persistence.repositories import build_company_repository
from leadscout.services.research import policy
from leadscout.services.research.assembler import ResultAssembler, to_contacts
from leadscout.services.research.domain import DnsDomainResolver, DomainValidator
from leadscout.services.research.errors import (
    NoLeadershipError,
    PipelineCancelledError,
    PipelineError,
)
from leadscout.services.research.evidence import (
    EvidenceGuard,
    GuardedExtraction,
    sourced_context,
    summary_context,
)
from leadscout.services.research.extractors import MetadataExtractor, PeopleExtractor
from leadscout.services.research.llm import OpenAIResearchModel, ResearchModel
from leadscout.services.research.revalidation import RevalidationLoop, needs_revalidation
from leadscout.services.research.search import SearchTool
from leadscout.services.research.sink import ResultSink
from leadscout.services.research.tool_loop import StageTranscript, ToolLoop
from leadscout.services.semantic_index import LoggingSemanticIndex

logger = logging.getLogger(__name__)

CancelCheck = Callable[[], Awaitable[bool]]

_NO_FALLBACK: Any = object()


class PipelineState(str, Enum):
    VALIDATING = "validating"
    RESEARCHING = "researching"
    EXTRACTING_METADATA = "extracting_metadata"
    FINDING_PEOPLE = "finding_people"
    EXTRACTING_PEOPLE = "extracting_people"
    REVALIDATING = "revalidating"
    ENRICHING = "enriching"
    ASSEMBLING = "assembling"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class PipelineConfig:
    """Per-run limits and model choices, resolved once from settings."""

    research_model: str = "gpt-4o"
    metadata_model: str = "gpt-4o-mini"
    research_max_round_trips: int = 3
    people_max_round_trips: int = 5
    revalidation_max_round_trips: int = 3
    min_evidence_chars: int = 100
    low_confidence_fallback_limit: int = 3

    @classmethod
    def from_settings(cls, settings: Settings) -> "PipelineConfig":
        return cls(
            research_model=settings.research_model,
            metadata_model=settings.metadata_model,
            research_max_round_trips=settings.research_max_round_trips,
            people_max_round_trips=settings.people_max_round_trips,
            revalidation_max_round_trips=settings.revalidation_max_round_trips,
            min_evidence_chars=settings.min_evidence_chars,
            low_confidence_fallback_limit=settings.low_confidence_fallback_limit,
        )


@dataclass(frozen=True)
class PipelineOutcome:
    """Either a result or the error that ended the run, never both."""

    result: PipelineResult | None = None
    error: PipelineError | None = None
    state: PipelineState = PipelineState.DONE
    failed_stage: PipelineState | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.result is not None

    @property
    def status_code(self) -> int:
        if self.error is not None:
            return self.error.http_status
        return 200

    @property
    def code(self) -> str:
        return self.error.code if self.error is not None else "OK"

    def unwrap(self) -> PipelineResult:
        if self.error is not None:
            raise self.error
        if self.result is None:
            raise PipelineError("Research run finished without a result", code="500_INTERNAL")
        return self.result


@dataclass
class _RunState:
    cancel_check: CancelCheck | None = None
    state: PipelineState = PipelineState.VALIDATING
    domain: str | None = None

    async def checkpoint(self, next_state: PipelineState) -> None:
        if self.cancel_check is not None and await self.cancel_check():
            raise PipelineCancelledError(
                f"Caller disconnected before {next_state.value}.",
                code="499_CLIENT_CLOSED",
            )


class ResearchPipeline:
    """Runs the research stages strictly in order for a single query.

    Stages share nothing across runs; every run gets its own transcripts and
    evidence contexts. Errors are classified by ``ERROR_POLICY`` in one place
    (``_run_stage``) and surface as a ``PipelineOutcome`` rather than raising.
    """

    def __init__(
        self,
        validator: DomainValidator,
        model: ResearchModel,
        search_tool: SearchTool,
        config: PipelineConfig | None = None,
        *,
        enrichment: EmailEnrichment | None = None,
        sink: ResultSink | None = None,
    ) -> None:
        self._config = config or PipelineConfig()
        self._validator = validator
        self._guard = EvidenceGuard(self._config.min_evidence_chars)
        self._tool_loop = ToolLoop(model, search_tool, model_name=self._config.research_model)
        self._metadata = MetadataExtractor(model, model_name=self._config.metadata_model)
        self._people = PeopleExtractor(model, model_name=self._config.research_model)
        self._revalidation = RevalidationLoop(
            self._tool_loop,
            self._people,
            self._guard,
            max_round_trips=self._config.revalidation_max_round_trips,
        )
        self._assembler = ResultAssembler(
            self._guard,
            fallback_limit=self._config.low_confidence_fallback_limit,
        )
        self._enrichment = enrichment
        self._sink = sink

    async def run(self, query: str | None, *, cancel_check: CancelCheck | None = None) -> PipelineOutcome:
        run = _RunState(cancel_check=cancel_check)
        start = time.perf_counter()
        try:
            result = await self._execute(query, run)
        except PipelineError as exc:
            outcome = PipelineOutcome(error=exc, state=PipelineState.FAILED, failed_stage=run.state)
        else:
            outcome = PipelineOutcome(result=result, state=PipelineState.DONE)

        elapsed_ms = (time.perf_counter() - start) * 1000
        metrics.increment("pipeline.outcome", tags={"code": outcome.code})
        metrics.timing("pipeline.latency_ms", elapsed_ms, tags={"status": outcome.status_code})
        logger.info(
            "pipeline.complete",
            extra={
                "domain": run.domain,
                "status": outcome.status_code,
                "code": outcome.code,
                "failed_stage": outcome.failed_stage.value if outcome.failed_stage else None,
                "people": len(outcome.result.people) if outcome.result else 0,
                "elapsed_ms": round(elapsed_ms, 2),
                "policy_version": policy.POLICY_VERSION,
            },
        )
        return outcome

    async def _execute(self, query: str | None, run: _RunState) -> PipelineResult:
        cfg = self._config
        domain = await self._run_stage(run, PipelineState.VALIDATING, partial(self._validator.validate, query))
        run.domain = domain

        system, user = policy.research_prompts(domain)
        research = await self._run_stage(
            run,
            PipelineState.RESEARCHING,
            partial(
                self._tool_loop.run,
                stage="research",
                user_prompt=user,
                system_prompt=system,
                max_round_trips=cfg.research_max_round_trips,
            ),
            fallback=StageTranscript(stage="research"),
        )

        metadata_context = summary_context(research.evidence) or research.text
        if metadata_context:
            metadata = await self._run_stage(
                run,
                PipelineState.EXTRACTING_METADATA,
                partial(self._metadata.extract, domain, metadata_context),
            )
        else:
            logger.warning("pipeline.metadata.no_context", extra={"domain": domain})
            metadata = CompanyMetadata(name=domain)

        system, user = policy.people_prompts(domain, metadata.name)
        finding = await self._run_stage(
            run,
            PipelineState.FINDING_PEOPLE,
            partial(
                self._tool_loop.run,
                stage="people",
                user_prompt=user,
                system_prompt=system,
                max_round_trips=cfg.people_max_round_trips,
            ),
            fallback=StageTranscript(stage="people"),
        )
        winner = await self._find_leadership(run, domain, metadata, sourced_context(finding.evidence))

        contacts = to_contacts(self._assembler.select(winner))
        if self._enrichment is not None and contacts:
            enriched = await self._run_stage(
                run,
                PipelineState.ENRICHING,
                partial(self._enrichment.enrich, people=contacts, domain=domain),
            )
            contacts = reachable(enriched)

        identified = bool(research.evidence) or bool(metadata.known_fields())
        result = await self._run_stage(
            run,
            PipelineState.ASSEMBLING,
            partial(self._assemble, domain, metadata, contacts, identified=identified),
        )

        if self._sink is not None:
            await self._run_stage(
                run,
                PipelineState.PERSISTING,
                partial(self._sink.persist, result),
                fallback=None,
                cancellable=False,
            )
        return result

    async def _find_leadership(
        self,
        run: _RunState,
        domain: str,
        metadata: CompanyMetadata,
        people_context: str,
    ) -> GuardedExtraction:
        if not people_context:
            logger.warning("pipeline.people.no_evidence", extra={"domain": domain})
            return GuardedExtraction(verdict=ExtractionVerdict.empty(), context_chars=0, source="initial")

        verdict = await self._run_stage(
            run,
            PipelineState.EXTRACTING_PEOPLE,
            partial(self._people.extract, domain, metadata.name, people_context),
        )
        initial = self._guard.apply(verdict, people_context, source="initial")
        # Thin evidence ends the search; revalidation only refines grounded results.
        if not self._guard.is_sufficient(initial.context_chars) or not needs_revalidation(initial.verdict):
            return initial

        return await self._run_stage(
            run,
            PipelineState.REVALIDATING,
            partial(self._revalidation.run, domain, initial, people_context),
        )

    def _assemble(self, domain, metadata, contacts, *, identified: bool) -> PipelineResult:
        if not contacts and not identified:
            raise NoLeadershipError(
                f"No company or leadership evidence found for {domain}",
                code="404_NO_LEADERSHIP",
            )
        return self._assembler.assemble(domain, metadata, contacts)

    async def _run_stage(
        self,
        run: _RunState,
        state: PipelineState,
        step: Callable[[], Any],
        *,
        fallback: Any = _NO_FALLBACK,
        cancellable: bool = True,
    ) -> Any:
        """Run one stage, applying the error policy to whatever it raises.

        Recoverable errors return ``fallback`` when the stage has one; every
        other ``PipelineError`` propagates and anything else is wrapped as an
        unexpected failure.
        """
        if cancellable:
            await run.checkpoint(state)
        run.state = state
        start = time.perf_counter()
        status = "ok"
        try:
            value = step()
            if inspect.isawaitable(value):
                value = await value
            return value
        except PipelineError as exc:
            if exc.recoverable and fallback is not _NO_FALLBACK:
                status = "recovered"
                logger.warning(
                    "pipeline.stage.recovered",
                    extra={"stage": state.value, "domain": run.domain, "code": exc.code},
                )
                return fallback
            status = exc.code
            logger.error(
                "pipeline.stage.failed",
                extra={
                    "stage": state.value,
                    "domain": run.domain,
                    "code": exc.code,
                    "kind": exc.kind.value,
                    "error": str(exc),
                },
            )
            raise
        except Exception as exc:
            status = "500_INTERNAL"
            logger.exception("pipeline.stage.unexpected", extra={"stage": state.value, "domain": run.domain})
            raise PipelineError(f"Unexpected failure while {state.value}", code="500_INTERNAL") from exc
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            metrics.timing(
                "pipeline.stage.latency_ms",
                elapsed_ms,
                tags={"stage": state.value, "status": status},
            )
            logger.debug(
                "pipeline.stage.complete",
                extra={"stage": state.value, "status": status, "elapsed_ms": round(elapsed_ms, 2)},
            )


def build_research_pipeline(app_settings: Settings | None = None) -> ResearchPipeline:
    """Wire the production collaborators from settings."""
    app_settings = app_settings or settings
    if not app_settings.exa_api_key or not app_settings.openai_api_key:
        raise PipelineError(
            "EXA_API_KEY and OPENAI_API_KEY must be configured to run research.",
            code="500_NOT_CONFIGURED",
        )
    search_tool = SearchTool(
        ExaClient.from_settings(app_settings),
        timeout_seconds=app_settings.search_timeout_seconds,
        max_snippet_chars=app_settings.evidence_snippet_max_chars,
        default_results=app_settings.search_default_results,
        max_results=app_settings.search_max_results,
        max_attempts=app_settings.search_max_attempts,
    )
    enrichment = (
        HttpEmailEnrichmentClient.from_settings(app_settings) if app_settings.email_enrichment_url else None
    )
    return ResearchPipeline(
        DomainValidator(DnsDomainResolver(timeout=app_settings.domain_resolve_timeout_seconds)),
        OpenAIResearchModel(app_settings.openai_api_key, temperature=app_settings.model_temperature),
        search_tool,
        PipelineConfig.from_settings(app_settings),
        enrichment=enrichment,
        sink=ResultSink(build_company_repository(app_settings.database_url), LoggingSemanticIndex()),
    )


_PIPELINE_INSTANCE: ResearchPipeline | None = None


def get_research_pipeline() -> ResearchPipeline:
    """Singleton accessor used by API routes."""
    global _PIPELINE_INSTANCE  # noqa: PLW0603
    if _PIPELINE_INSTANCE is None:
        _PIPELINE_INSTANCE = build_research_pipeline()
    return _PIPELINE_INSTANCE
