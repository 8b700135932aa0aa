"""Single job posting ingestion.

One posting is resolved into a company, a job post and its contact people,
then linked.  The writes are committed together; outbound enrichment is
scheduled only after the commit and can never fail the ingestion.
"""

from __future__ import annotations

from typing import Any

import structlog

from leadgraph.config import Settings
from leadgraph.db import Store
from leadgraph.entity_resolution.deterministic import company_record, person_record
from leadgraph.entity_resolution.links import link_contacts
from leadgraph.entity_resolution.resolver import (
    Resolution,
    resolve_company,
    resolve_job_post,
    resolve_person,
)
from leadgraph.errors import PayloadValidationError
from leadgraph.keys import build_company_key, build_person_key
from leadgraph.normalize import (
    classify_person_role,
    extract_finn_id,
    is_valid_person_name,
    normalize_date,
    normalize_domain_host,
)
from leadgraph.pipelines.enrichment_push import EnrichmentWebhook, schedule_enrichment_push
from leadgraph.schemas import JobPostingPayload, parse_payload

logger = structlog.get_logger(__name__)


def posting_finn_id(payload: JobPostingPayload) -> str:
    """Posting id from the URL, or the explicit ``finnkode``."""
    finn_id = extract_finn_id(str(payload.url)) or (payload.finnkode or "").strip()
    if not finn_id:
        msg = "Unable to derive finn_id from url or finnkode"
        raise PayloadValidationError(msg, [{"loc": "url", "msg": msg}])
    return finn_id


def _optional_url(value: Any) -> str | None:
    return str(value) if value is not None else None


def job_post_record(
    payload: JobPostingPayload,
    *,
    finn_id: str,
    company_id: Any,
    domain_host: str | None,
    source: str,
) -> dict[str, Any]:
    return {
        "finn_id": finn_id,
        "finn_url": str(payload.url),
        "company_id": company_id,
        "title": payload.title,
        "description": payload.description,
        "application_url": _optional_url(payload.applicationUrl),
        "contact_email": payload.email,
        "location": payload.location,
        "employment_type": payload.employmentType,
        "salary": payload.salary,
        "publication_date": normalize_date(payload.publicationDate),
        "expiration_date": normalize_date(payload.expirationDate),
        "sector": payload.sector,
        "industries": payload.industries,
        "position_functions": payload.positionFunctions,
        "language": payload.language,
        "company_logo_url": _optional_url(payload.companyLogoUrl),
        "company_name": payload.company,
        "company_domain_host": domain_host,
        "source": source,
        "raw_payload": payload.model_dump(mode="json"),
    }


def _company_counts(resolution: Resolution) -> dict[str, Any]:
    return {
        "inserted": int(resolution.is_new),
        "updated": int(not resolution.is_new and bool(resolution.fields_updated)),
        "matched_existing": not resolution.is_new,
        "company_key": resolution.key,
        "fields_updated": resolution.fields_updated,
    }


def ingest_job_posting(
    store: Store,
    payload: JobPostingPayload | dict[str, Any],
    source: str,
    *,
    settings: Settings,
    webhook: EnrichmentWebhook | None = None,
) -> dict[str, Any]:
    """Ingest one scraped posting and return per-entity counts.

    Raises:
        PayloadValidationError: If the payload is malformed or has no posting id.
        KeyDerivationError: If no company key can be derived.
    """
    placeholder = settings.placeholder_domain
    if not isinstance(payload, JobPostingPayload):
        payload = parse_payload(JobPostingPayload, payload)

    finn_id = posting_finn_id(payload)
    domain_host = normalize_domain_host(payload.domain)
    usable_domain = domain_host if domain_host != placeholder else None

    company_key = build_company_key(
        clean_domain=domain_host,
        domain_host=domain_host,
        name=payload.company,
        placeholder_domain=placeholder,
    )
    company = resolve_company(
        store,
        company_record(
            company_key=company_key,
            name=payload.company,
            domain=domain_host,
            placeholder_domain=placeholder,
            sector=payload.sector,
            industry=payload.industries[0] if payload.industries else None,
            location=payload.location,
        ),
        placeholder_domain=placeholder,
    )

    job = resolve_job_post(
        store,
        job_post_record(
            payload,
            finn_id=finn_id,
            company_id=company.id,
            domain_host=domain_host,
            source=source,
        ),
    )

    people = {"inserted": 0, "updated": 0, "skipped": 0}
    contacts: list[tuple[Any, str]] = []
    for contact in payload.contactPersons:
        if not is_valid_person_name(contact.name):
            people["skipped"] += 1
            logger.debug("contact_skipped_invalid_name", finn_id=finn_id, name=contact.name)
            continue
        person_key = build_person_key(
            linkedin_url=contact.linkedin,
            email=contact.email,
            phone=contact.phoneNumber,
            full_name=contact.name,
            company_domain=usable_domain,
            company_name=payload.company,
            company_key=company.key,
            placeholder_domain=placeholder,
        )
        person = resolve_person(
            store,
            person_record(
                person_key=person_key,
                full_name=contact.name,
                title=contact.role,
                email=contact.email,
                phone=contact.phoneNumber,
                linkedin_url=contact.linkedin,
                company_name=payload.company,
                company_domain=usable_domain,
            ),
            placeholder_domain=placeholder,
        )
        if person.is_new:
            people["inserted"] += 1
        elif person.fields_updated:
            people["updated"] += 1
        contacts.append((person.id, classify_person_role(contact.role)))

    links = link_contacts(store, company_id=company.id, job_post_id=job.id, contacts=contacts)
    store.commit()

    counts = {
        "finn_id": finn_id,
        "companies": _company_counts(company),
        "job_posts": {
            "inserted": int(job.is_new),
            "updated": int(bool(job.fields_updated)),
            "source": job.row.get("source"),
        },
        "people": people,
        **links,
    }
    logger.info(
        "job_posting_ingested",
        finn_id=finn_id,
        source=source,
        company_key=company.key,
        company_matched=not company.is_new,
        people_inserted=people["inserted"],
    )

    if webhook is not None:
        schedule_enrichment_push(
            store, webhook, job.id, max_bytes=settings.enrichment_description_max_bytes
        )
    return counts
