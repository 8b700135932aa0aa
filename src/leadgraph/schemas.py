"""Inbound and outbound payload schemas."""

from __future__ import annotations

from typing import Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, ValidationError

from leadgraph.errors import PayloadValidationError

PersonRole = Literal["contact_person", "decision_maker", "recruiter", "other"]

ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_payload(model: type[ModelT], data: Any) -> ModelT:
    """Validate *data* against *model*, raising :class:`PayloadValidationError`."""
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise PayloadValidationError.from_pydantic(exc) from exc


# ---------------------------------------------------------------------------
# Scraped job postings
# ---------------------------------------------------------------------------

class ContactPerson(BaseModel):
    name: str
    role: str | None = None
    phoneNumber: str | None = None
    email: str | None = None
    linkedin: str | None = None


class JobPostingPayload(BaseModel):
    """One job posting as delivered by a scraper."""

    model_config = ConfigDict(extra="ignore")

    url: HttpUrl
    title: str
    description: str
    company: str
    contactPersons: list[ContactPerson] = Field(default_factory=list)
    applicationUrl: HttpUrl | None = None
    location: str | None = None
    employmentType: str | None = None
    email: str | None = None
    salary: str | None = None
    publicationDate: str | None = None
    expirationDate: str | None = None
    companyLogoUrl: HttpUrl | None = None
    domain: str | None = None
    sector: str | None = None
    industries: list[str] | None = None
    positionFunctions: list[str] | None = None
    language: str | None = None
    finnkode: str | None = None


# ---------------------------------------------------------------------------
# Enrichment results (inbound correction channel)
# ---------------------------------------------------------------------------

class EnrichmentCompany(BaseModel):
    orgnr: str | None = None
    domain: str | None = None
    proff_url: str | None = None
    industry: str | None = None
    company_size: str | None = None
    location: str | None = None
    sector: str | None = None
    profit_before_tax: str | None = None
    turnover: str | None = None


class EnrichmentPerson(BaseModel):
    full_name: str
    title: str | None = None
    email: str | None = None
    phone: str | None = None
    linkedin_url: str | None = None


class EnrichmentResultPayload(BaseModel):
    finn_id: str = Field(min_length=1)
    company: EnrichmentCompany | None = None
    decision_makers: list[EnrichmentPerson] = Field(default_factory=list)
    contact_persons: list[EnrichmentPerson] = Field(default_factory=list)


class EnrichmentBatchPayload(BaseModel):
    items: list[EnrichmentResultPayload] = Field(min_length=1, max_length=100)


# ---------------------------------------------------------------------------
# Pre-keyed import
# ---------------------------------------------------------------------------

class KeyedCompany(BaseModel):
    company_key: str = Field(min_length=1)
    name: str = Field(min_length=1)
    domain: str | None = None
    orgnr: str | None = None
    proff_url: HttpUrl | None = None
    industry: str | None = None
    company_size: str | None = None
    location: str | None = None


class KeyedPerson(BaseModel):
    person_key: str = Field(min_length=1)
    full_name: str = Field(min_length=1)
    title: str | None = None
    email: str | None = None
    phone: str | None = None
    linkedin_url: str | None = None


class KeyedLink(BaseModel):
    company_key: str = Field(min_length=1)
    person_key: str = Field(min_length=1)
    role: PersonRole


class NormalizedImportPayload(BaseModel):
    companies: list[KeyedCompany] = Field(default_factory=list)
    people: list[KeyedPerson] = Field(default_factory=list)
    links: list[KeyedLink] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Outbound enrichment push
# ---------------------------------------------------------------------------

class OutboundPerson(BaseModel):
    full_name: str
    title: str | None = None
    email: str | None = None
    phone: str | None = None
    linkedin_url: str | None = None


class OutboundJobPost(BaseModel):
    finn_id: str
    finn_url: str
    title: str | None = None
    description: str | None = None
    location: str | None = None
    employment_type: str | None = None
    salary: str | None = None
    publication_date: str | None = None
    expiration_date: str | None = None
    application_url: str | None = None
    sector: str | None = None
    industries: list[str] | None = None
    source: str | None = None


class OutboundCompany(BaseModel):
    name: str | None = None
    domain: str | None = None
    clean_domain: str | None = None
    orgnr: str | None = None
    proff_url: str | None = None
    industry: str | None = None
    company_size: str | None = None
    location: str | None = None
    sector: str | None = None
    profit_before_tax: str | None = None
    turnover: str | None = None


class EnrichmentPushPayload(BaseModel):
    job_post: OutboundJobPost
    company: OutboundCompany
    decision_makers: list[OutboundPerson] = Field(default_factory=list)
    contact_persons: list[OutboundPerson] = Field(default_factory=list)
    decision_makers_text: str = ""
    contact_persons_text: str = ""
