"""Domain models for company research runs."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    """Base model that speaks camelCase on the wire and snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Confidence(str, Enum):
    """How explicitly the evidence ties a person to the target domain."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class CompanyMetadata(_CamelModel):
    """Structured company facts; everything except the name may be unknown."""

    name: str = Field(description="Company name")
    description: str | None = Field(default=None, description="Brief company description")
    tech_stack: str | None = Field(default=None, description="Technologies used")
    industry: str | None = Field(default=None, description="Industry/sector")
    year_founded: int | None = Field(default=None, description="Year founded")
    headquarters: str | None = Field(default=None, description="HQ location")
    revenue: str | None = Field(default=None, description="Revenue if public")
    funding: str | None = Field(default=None, description="Funding stage/amount")
    employee_count_min: int | None = Field(default=None, description="Min employee count")
    employee_count_max: int | None = Field(default=None, description="Max employee count")

    def known_fields(self) -> list[str]:
        """Names of the optional fields the extractor actually filled in."""
        return [
            field
            for field, value in self.model_dump(exclude={"name"}).items()
            if value is not None
        ]


class EvidenceRecord(BaseModel):
    """One search hit kept in a stage's working memory."""

    model_config = ConfigDict(frozen=True)

    title: str = ""
    url: str = ""
    content: str = ""

    def is_empty(self) -> bool:
        return not (self.title or self.content)


class PersonCandidate(_CamelModel):
    """A leadership individual surfaced by extraction."""

    name: str = Field(description="Full name")
    role: str = Field(description="Job title")
    confidence: Confidence = Field(
        description="How confident we are this person works at this specific company",
    )


class ExtractionVerdict(_CamelModel):
    """Output of one people-extraction call."""

    people: list[PersonCandidate] = Field(description="Leadership found for the company")
    needs_more_search: bool = Field(description="True if results seem wrong or insufficient")
    reasoning: str = Field(description="Why these results are or aren't good")

    @classmethod
    def empty(cls) -> "ExtractionVerdict":
        return cls(people=[], needs_more_search=False, reasoning="")

    def confident_people(self) -> list[PersonCandidate]:
        return [person for person in self.people if person.confidence is not Confidence.LOW]


class PersonContact(_CamelModel):
    """A person as emitted downstream: confidence dropped, emails attached."""

    name: str
    role: str
    emails: list[str] = Field(default_factory=list)


class PipelineResult(_CamelModel):
    """Final artifact of a research run."""

    company: str
    domain: str
    website: str
    favicon: str
    description: str | None = None
    tech_stack: str | None = None
    industry: str | None = None
    year_founded: int | None = None
    headquarters: str | None = None
    revenue: str | None = None
    funding: str | None = None
    employee_count_min: int | None = None
    employee_count_max: int | None = None
    people: list[PersonContact] = Field(default_factory=list)

    def metadata(self) -> CompanyMetadata:
        return CompanyMetadata(
            name=self.company,
            description=self.description,
            tech_stack=self.tech_stack,
            industry=self.industry,
            year_founded=self.year_founded,
            headquarters=self.headquarters,
            revenue=self.revenue,
            funding=self.funding,
            employee_count_min=self.employee_count_min,
            employee_count_max=self.employee_count_max,
        )
