"""Import of already-keyed companies, people and company/person links.

Callers supply their own natural keys; only identifier columns are
normalized.  Links naming a key that was not written are dropped.
"""

from __future__ import annotations

from typing import Any

import structlog

from leadgraph.config import Settings
from leadgraph.db import Store
from leadgraph.entity_resolution.deterministic import COMPANIES, PEOPLE, compact
from leadgraph.entity_resolution.links import upsert_company_people
from leadgraph.normalize import (
    canonicalize_linkedin_url,
    normalize_company_name_for_matching,
    normalize_domain_host,
    normalize_email,
    normalize_orgnr,
    normalize_phone,
)
from leadgraph.schemas import KeyedCompany, KeyedPerson, NormalizedImportPayload, parse_payload

logger = structlog.get_logger(__name__)


def keyed_company_row(company: KeyedCompany, placeholder_domain: str) -> dict[str, Any]:
    host = normalize_domain_host(company.domain)
    return compact({
        "company_key": company.company_key,
        "name": company.name,
        "domain": host,
        "clean_domain": host if host != placeholder_domain else None,
        "clean_name": normalize_company_name_for_matching(company.name),
        "orgnr": normalize_orgnr(company.orgnr),
        "proff_url": str(company.proff_url) if company.proff_url else None,
        "industry": company.industry,
        "company_size": company.company_size,
        "location": company.location,
    })


def keyed_person_row(person: KeyedPerson) -> dict[str, Any]:
    return compact({
        "person_key": person.person_key,
        "full_name": person.full_name,
        "title": person.title,
        "email": normalize_email(person.email),
        "phone": normalize_phone(person.phone),
        "linkedin_url": canonicalize_linkedin_url(person.linkedin_url),
    })


def import_normalized(
    store: Store,
    payload: NormalizedImportPayload | dict[str, Any],
    *,
    settings: Settings,
) -> dict[str, Any]:
    """Upsert companies and people by key, then their links, and commit.

    Returns
    -------
    dict
        ``{"companies": n, "people": n, "company_people": {...}, "links_dropped": n}``
    """
    if not isinstance(payload, NormalizedImportPayload):
        payload = parse_payload(NormalizedImportPayload, payload)

    companies = store.upsert(
        COMPANIES,
        [keyed_company_row(c, settings.placeholder_domain) for c in payload.companies],
        ["company_key"],
        on_conflict="fill",
    )
    people = store.upsert(
        PEOPLE,
        [keyed_person_row(p) for p in payload.people],
        ["person_key"],
        on_conflict="fill",
    )

    company_ids = {row["company_key"]: row["id"] for row in companies}
    person_ids = {row["person_key"]: row["id"] for row in people}
    links = [
        {
            "company_id": company_ids[link.company_key],
            "person_id": person_ids[link.person_key],
            "role": link.role,
        }
        for link in payload.links
        if link.company_key in company_ids and link.person_key in person_ids
    ]
    counts = upsert_company_people(store, links)
    store.commit()

    stats = {
        "companies": len(companies),
        "people": len(people),
        "company_people": counts.as_dict(),
        "links_dropped": len(payload.links) - len(links),
    }
    logger.info("normalized_import_complete", **stats)
    return stats
