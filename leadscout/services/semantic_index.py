"""Semantic index sink for persisted companies and people."""

from __future__ import annotations

import logging
from typing import Protocol

from leadscout.models.research import PersonContact, PipelineResult

logger = logging.getLogger(__name__)


class SemanticIndex(Protocol):
    async def index_company(self, company_id: int, result: PipelineResult) -> None:
        ...

    async def index_employee(self, employee_id: int, company_id: int, person: PersonContact) -> None:
        ...


class LoggingSemanticIndex:
    """Default index that records what would be embedded."""

    def __init__(self) -> None:
        self.companies: list[int] = []
        self.employees: list[int] = []

    async def index_company(self, company_id: int, result: PipelineResult) -> None:
        self.companies.append(company_id)
        logger.info(
            "semantic_index.company",
            extra={"company_id": company_id, "company": result.company, "domain": result.domain},
        )

    async def index_employee(self, employee_id: int, company_id: int, person: PersonContact) -> None:
        self.employees.append(employee_id)
        logger.info(
            "semantic_index.employee",
            extra={"employee_id": employee_id, "company_id": company_id, "role": person.role},
        )
