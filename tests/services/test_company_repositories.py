from __future__ import annotations

from pathlib import Path

import pytest
from sqlmodel import Session, select

from leadscout.models.records import CompanyProfileRecord
from leadscout.models.research import CompanyMetadata
from leadscout.services.persistence.repositories import (
    InMemoryCompanyRepository,
    SqlCompanyRepository,
    build_company_repository,
)
from leadscout.services.research.errors import PersistenceError


def _load_company(repository, company_id: int) -> CompanyProfileRecord:
    if isinstance(repository, InMemoryCompanyRepository):
        return repository.companies[company_id]
    with Session(repository._engine) as session:
        return session.exec(select(CompanyProfileRecord).where(CompanyProfileRecord.id == company_id)).one()


@pytest.fixture(params=["memory", "sqlite"])
def repository(request, tmp_path: Path):
    if request.param == "memory":
        yield InMemoryCompanyRepository()
        return
    repo = SqlCompanyRepository(f"sqlite:///{tmp_path / 'leadscout.db'}")
    yield repo
    repo.dispose()


def test_company_upsert_matches_name_case_insensitively(repository):
    first = repository.upsert_company(CompanyMetadata(name="Acme"), website="https://acme.io")
    second = repository.upsert_company(
        CompanyMetadata(name="ACME", industry="Aerospace"),
        website="https://acme.io",
    )

    assert first.created
    assert not second.created
    assert second.id == first.id


def test_company_upsert_matches_on_website(repository):
    first = repository.upsert_company(CompanyMetadata(name="Acme"), website="https://acme.io")
    renamed = repository.upsert_company(CompanyMetadata(name="Acme Rockets Inc"), website="https://acme.io")

    assert renamed.id == first.id
    assert not renamed.created


def test_company_update_keeps_known_fields_when_new_value_is_null(repository):
    saved = repository.upsert_company(CompanyMetadata(name="Acme", industry="Aerospace"), website=None)
    repository.upsert_company(CompanyMetadata(name="Acme", headquarters="Austin, TX"), website=None)

    record = _load_company(repository, saved.id)
    assert record.industry == "Aerospace"
    assert record.headquarters == "Austin, TX"


def test_employee_upsert_is_idempotent_per_company(repository):
    company = repository.upsert_company(CompanyMetadata(name="Acme"), website=None)
    other = repository.upsert_company(CompanyMetadata(name="Other Co"), website=None)

    first = repository.upsert_employee(company.id, name="Jane Doe", title="CEO", email="jane@acme.io")
    again = repository.upsert_employee(company.id, name="jane doe", title=None, email=None)
    elsewhere = repository.upsert_employee(other.id, name="Jane Doe", title="Advisor", email=None)

    assert first.created
    assert not again.created
    assert again.id == first.id
    assert elsewhere.created
    assert elsewhere.id != first.id


def test_blank_names_are_rejected(repository):
    with pytest.raises(PersistenceError):
        repository.upsert_company(CompanyMetadata(name="  "), website=None)


def test_build_company_repository_defaults_to_memory(tmp_path: Path):
    assert isinstance(build_company_repository(None), InMemoryCompanyRepository)
    repo = build_company_repository(f"sqlite+aiosqlite:///{tmp_path / 'async.db'}")
    assert isinstance(repo, SqlCompanyRepository)
    repo.dispose()
