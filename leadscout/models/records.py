"""SQLModel mappings for persisted companies and employees."""
# ruff: noqa: UP017

from __future__ import annotations

from datetime import datetime, timezone

import sqlalchemy as sa
from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql import expression
from sqlmodel import Field, SQLModel

from leadscout.models.research import CompanyMetadata


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UtcNow(expression.FunctionElement):
    """Dialect-aware server default that pins timestamps to UTC."""

    type = DateTime(timezone=True)
    inherit_cache = True


@compiles(UtcNow)
def _utc_now_default(
    element, compiler, **kwargs
) -> str:  # pragma: no cover - trivial sql generator
    return "CURRENT_TIMESTAMP"


@compiles(UtcNow, "postgresql")
def _utc_now_default_postgres(
    element, compiler, **kwargs
) -> str:  # pragma: no cover - trivial sql generator
    return "timezone('utc', now())"


class CompanyProfileRecord(SQLModel, table=True):
    """One researched company, keyed by name or website."""

    __tablename__ = "company_profiles"
    __table_args__ = (sa.Index("ix_company_profiles_website", "website"),)

    id: int | None = Field(default=None, sa_column=Column(Integer, primary_key=True, autoincrement=True))
    company_name: str = Field(sa_column=Column(String(length=255), nullable=False))
    website: str | None = Field(default=None, sa_column=Column(String(length=512), nullable=True))
    description: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    tech_stack: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    industry: str | None = Field(default=None, sa_column=Column(String(length=255), nullable=True))
    year_founded: int | None = Field(default=None, sa_column=Column(Integer, nullable=True))
    headquarters: str | None = Field(default=None, sa_column=Column(String(length=255), nullable=True))
    revenue: str | None = Field(default=None, sa_column=Column(String(length=255), nullable=True))
    funding: str | None = Field(default=None, sa_column=Column(String(length=255), nullable=True))
    employee_count_min: int | None = Field(default=None, sa_column=Column(Integer, nullable=True))
    employee_count_max: int | None = Field(default=None, sa_column=Column(Integer, nullable=True))
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, server_default=UtcNow()),
    )

    def apply_metadata(self, metadata: CompanyMetadata) -> bool:
        """Copy non-null metadata onto the row; returns True if anything changed."""
        changed = False
        for field, value in metadata.model_dump(exclude={"name"}).items():
            if isinstance(value, str):
                value = value.strip() or None
            if value is not None and getattr(self, field) != value:
                setattr(self, field, value)
                changed = True
        return changed


class EmployeeRecord(SQLModel, table=True):
    """A person at a company, keyed by (lower(name), company)."""

    __tablename__ = "employees"
    __table_args__ = (sa.Index("ix_employees_company_id", "company_id"),)

    id: int | None = Field(default=None, sa_column=Column(Integer, primary_key=True, autoincrement=True))
    company_id: int = Field(
        sa_column=Column(Integer, sa.ForeignKey("company_profiles.id"), nullable=False),
    )
    employee_name: str = Field(sa_column=Column(String(length=255), nullable=False))
    employee_title: str | None = Field(default=None, sa_column=Column(String(length=255), nullable=True))
    email: str | None = Field(default=None, sa_column=Column(String(length=320), nullable=True))
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, server_default=UtcNow()),
    )
