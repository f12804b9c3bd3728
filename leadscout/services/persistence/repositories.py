"""Persistence backends for researched companies and their people."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from threading import Lock
from typing import Any, Protocol

from sqlalchemy import func, or_
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import URL, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, create_engine, select

from leadscout.models.records import CompanyProfileRecord, EmployeeRecord
from leadscout.models.research import CompanyMetadata
from leadscout.observability.metrics import metrics
from leadscout.services.research.errors import PersistenceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpsertOutcome:
    id: int
    created: bool


class CompanyRepository(Protocol):
    """Idempotent upserts for companies and employees."""

    def upsert_company(self, metadata: CompanyMetadata, *, website: str | None) -> UpsertOutcome:
        ...

    def upsert_employee(
        self,
        company_id: int,
        *,
        name: str,
        title: str | None,
        email: str | None,
    ) -> UpsertOutcome:
        ...


def _company_key(name: str) -> str:
    return " ".join(name.split()).lower()


class InMemoryCompanyRepository(CompanyRepository):
    """Thread-safe repository used for API/local development."""

    def __init__(self) -> None:
        self.companies: dict[int, CompanyProfileRecord] = {}
        self.employees: dict[int, EmployeeRecord] = {}
        self._lock = Lock()

    def upsert_company(self, metadata: CompanyMetadata, *, website: str | None) -> UpsertOutcome:
        name = metadata.name.strip()
        if not name:
            raise PersistenceError("Company name is required.", code="422_INVALID_COMPANY_DATA")
        key = _company_key(name)
        with self._lock:
            for record in self.companies.values():
                if _company_key(record.company_name) == key or (website and record.website == website):
                    if website:
                        record.website = website
                    record.apply_metadata(metadata)
                    return UpsertOutcome(id=record.id, created=False)
            record = CompanyProfileRecord(id=len(self.companies) + 1, company_name=name, website=website)
            record.apply_metadata(metadata)
            self.companies[record.id] = record
        metrics.increment("persistence.company_created", tags={"repository": "memory"})
        return UpsertOutcome(id=record.id, created=True)

    def upsert_employee(
        self,
        company_id: int,
        *,
        name: str,
        title: str | None,
        email: str | None,
    ) -> UpsertOutcome:
        name = name.strip()
        if not name:
            raise PersistenceError("Employee name is required.", code="422_INVALID_EMPLOYEE_DATA")
        key = _company_key(name)
        with self._lock:
            for record in self.employees.values():
                if record.company_id == company_id and _company_key(record.employee_name) == key:
                    record.employee_title = title or record.employee_title
                    record.email = email or record.email
                    return UpsertOutcome(id=record.id, created=False)
            record = EmployeeRecord(
                id=len(self.employees) + 1,
                company_id=company_id,
                employee_name=name,
                employee_title=title,
                email=email,
            )
            self.employees[record.id] = record
        return UpsertOutcome(id=record.id, created=True)


class SqlCompanyRepository(CompanyRepository):
    """SQLModel-backed repository for SQLite or Postgres."""

    def __init__(self, database_url: str, *, auto_create_schema: bool = True, echo: bool = False) -> None:
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlCompanyRepository.")
        parsed_url = make_url(database_url)
        sync_url, connect_args, drivername = _coerce_sync_database_url(parsed_url)
        is_sqlite = drivername.startswith("sqlite")
        engine_kwargs: dict[str, Any] = {
            "echo": echo,
            "connect_args": connect_args,
            "pool_pre_ping": not is_sqlite,
        }
        self._engine: Engine = create_engine(sync_url, **engine_kwargs)
        if auto_create_schema:
            SQLModel.metadata.create_all(self._engine)
        self._metrics_tags = {"repository": "sqlite" if is_sqlite else "postgres"}

    def dispose(self) -> None:
        """Close the underlying SQLAlchemy engine."""
        self._engine.dispose()

    def upsert_company(self, metadata: CompanyMetadata, *, website: str | None) -> UpsertOutcome:
        name = metadata.name.strip()
        if not name:
            raise PersistenceError("Company name is required.", code="422_INVALID_COMPANY_DATA")
        conditions = [func.lower(CompanyProfileRecord.company_name) == _company_key(name)]
        if website:
            conditions.append(CompanyProfileRecord.website == website)
        try:
            with self._session() as session:
                existing = session.exec(select(CompanyProfileRecord).where(or_(*conditions)).limit(1)).first()
                if existing:
                    changed = existing.apply_metadata(metadata)
                    if website and existing.website != website:
                        existing.website = website
                        changed = True
                    if changed:
                        session.add(existing)
                        session.commit()
                    return UpsertOutcome(id=existing.id, created=False)

                record = CompanyProfileRecord(company_name=name, website=website)
                record.apply_metadata(metadata)
                session.add(record)
                session.commit()
                session.refresh(record)
                metrics.increment("persistence.company_created", tags=self._metrics_tags)
                return UpsertOutcome(id=record.id, created=True)
        except SQLAlchemyError as exc:
            logger.exception(
                "persistence.error",
                extra={"company": name, "backend": self._metrics_tags["repository"]},
            )
            raise PersistenceError("Failed to upsert company.", code="500_INTERNAL") from exc

    def upsert_employee(
        self,
        company_id: int,
        *,
        name: str,
        title: str | None,
        email: str | None,
    ) -> UpsertOutcome:
        name = name.strip()
        if not name:
            raise PersistenceError("Employee name is required.", code="422_INVALID_EMPLOYEE_DATA")
        try:
            with self._session() as session:
                statement = select(EmployeeRecord).where(
                    EmployeeRecord.company_id == company_id,
                    func.lower(EmployeeRecord.employee_name) == _company_key(name),
                )
                existing = session.exec(statement.limit(1)).first()
                if existing:
                    existing.employee_title = title or existing.employee_title
                    existing.email = email or existing.email
                    session.add(existing)
                    session.commit()
                    return UpsertOutcome(id=existing.id, created=False)

                record = EmployeeRecord(
                    company_id=company_id,
                    employee_name=name,
                    employee_title=title,
                    email=email,
                )
                session.add(record)
                session.commit()
                session.refresh(record)
                return UpsertOutcome(id=record.id, created=True)
        except SQLAlchemyError as exc:
            logger.exception(
                "persistence.error",
                extra={"company_id": company_id, "backend": self._metrics_tags["repository"]},
            )
            raise PersistenceError("Failed to upsert employee.", code="500_INTERNAL") from exc

    @contextmanager
    def _session(self) -> Iterator[Session]:
        with Session(self._engine) as session:
            yield session


def _coerce_sync_database_url(url: URL) -> tuple[str, dict[str, Any], str]:
    """Convert async connection strings into sync SQLAlchemy URLs."""
    drivername = url.drivername
    connect_args: dict[str, Any] = {}
    if drivername.endswith("+asyncpg"):
        drivername = drivername.replace("+asyncpg", "+psycopg2")
    elif drivername.endswith("+aiosqlite"):
        drivername = "sqlite"
    sync_url = url.set(drivername=drivername)
    if drivername.startswith("sqlite"):
        connect_args.setdefault("check_same_thread", False)
    return sync_url.render_as_string(hide_password=False), connect_args, drivername


def build_company_repository(database_url: str | None) -> CompanyRepository:
    """Instantiate a CompanyRepository using DATABASE_URL when available."""
    if not database_url:
        logger.info("persistence.repository.initialized", extra={"backend": "memory"})
        return InMemoryCompanyRepository()
    repository = SqlCompanyRepository(database_url)
    logger.info("persistence.repository.initialized", extra={"backend": "database"})
    return repository
