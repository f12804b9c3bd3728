"""Hands finished results to persistence and the semantic index, best-effort."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from leadscout.models.research import PersonContact, PipelineResult
from leadscout.observability.metrics import metrics
from leadscout.services.persistence.repositories import CompanyRepository
from leadscout.services.research.errors import ErrorKind, PersistenceError
from leadscout.services.semantic_index import SemanticIndex

logger = logging.getLogger(__name__)


@dataclass
class SavedResult:
    company_id: int
    new_employees: list[tuple[int, PersonContact]] = field(default_factory=list)


class ResultSink:
    """Upserts the company and its people, then schedules indexing.

    Neither step can fail a research run: any persistence failure is logged and
    swallowed, and indexing runs as detached tasks.
    """

    def __init__(self, repository: CompanyRepository, index: SemanticIndex | None = None) -> None:
        self._repository = repository
        self._index = index
        self._tasks: set[asyncio.Task] = set()

    async def persist(self, result: PipelineResult) -> SavedResult | None:
        try:
            saved = await asyncio.to_thread(self._save, result)
        except PersistenceError as exc:
            metrics.increment("persistence.errors", tags={"code": exc.code})
            logger.exception("persistence.failed", extra={"domain": result.domain, "code": exc.code})
            return None
        except Exception:
            code = ErrorKind.UNEXPECTED.name
            metrics.increment("persistence.errors", tags={"code": code})
            logger.exception("persistence.failed", extra={"domain": result.domain, "code": code})
            return None

        logger.info(
            "persistence.saved",
            extra={
                "domain": result.domain,
                "company_id": saved.company_id,
                "new_employees": len(saved.new_employees),
            },
        )
        if self._index is not None:
            self._schedule(self._index.index_company(saved.company_id, result), label="company")
            for employee_id, person in saved.new_employees:
                self._schedule(
                    self._index.index_employee(employee_id, saved.company_id, person),
                    label="employee",
                )
        return saved

    async def drain(self) -> None:
        """Wait for any scheduled indexing tasks; used on shutdown and in tests."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _save(self, result: PipelineResult) -> SavedResult:
        company = self._repository.upsert_company(result.metadata(), website=result.website)
        saved = SavedResult(company_id=company.id)
        for person in result.people:
            employee = self._repository.upsert_employee(
                company.id,
                name=person.name,
                title=person.role,
                email=person.emails[0] if person.emails else None,
            )
            if employee.created:
                saved.new_employees.append((employee.id, person))
        return saved

    def _schedule(self, coro, *, label: str) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(lambda done: self._finish(done, label))

    def _finish(self, task: asyncio.Task, label: str) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            metrics.increment("semantic_index.errors", tags={"kind": label})
            logger.error(
                "semantic_index.failed",
                extra={"kind": label, "error": str(exc)},
                exc_info=exc,
            )
