"""Deterministic (exact-match) identity lookups and record helpers.

Provides the priority-ordered store lookups used to find an existing
company, person or job post under any of its identifiers, plus the
null-filling merge rule shared by the resolver and the enrichment channel.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from leadgraph.db import Store
from leadgraph.normalize import (
    PLACEHOLDER_DOMAIN,
    canonicalize_linkedin_url,
    name_slug,
    normalize_company_name_for_matching,
    normalize_domain_host,
    normalize_email,
    normalize_name_for_key,
    normalize_orgnr,
    normalize_phone,
)

COMPANIES = "companies"
PEOPLE = "people"
JOB_POSTS = "job_posts"

COMPANY_ENRICHMENT_FIELDS = (
    "industry",
    "company_size",
    "location",
    "sector",
    "proff_url",
    "profit_before_tax",
    "turnover",
)


def compact(row: Mapping[str, Any]) -> dict[str, Any]:
    """Drop ``None`` and empty-string values so they never overwrite stored data."""
    return {k: v for k, v in row.items() if v is not None and v != ""}


def fill_missing_fields(
    existing: Mapping[str, Any],
    incoming: Mapping[str, Any],
    *,
    exclude: Iterable[str] = (),
) -> dict[str, Any]:
    """Fields of *incoming* that are non-null and currently null on *existing*."""
    skip = set(exclude)
    return {
        col: value
        for col, value in compact(incoming).items()
        if col not in skip and existing.get(col) is None
    }


def merge_sources(*values: str | None) -> str | None:
    """Union of comma-joined source lists, deduplicated and sorted."""
    sources = {
        part.strip()
        for value in values
        if value
        for part in value.split(",")
        if part.strip()
    }
    return ",".join(sorted(sources)) or None


# ---------------------------------------------------------------------------
# Record builders
# ---------------------------------------------------------------------------

def company_record(
    *,
    company_key: str,
    name: str | None,
    domain: str | None = None,
    clean_domain: str | None = None,
    orgnr: str | None = None,
    placeholder_domain: str = PLACEHOLDER_DOMAIN,
    **enrichment: Any,
) -> dict[str, Any]:
    """Normalized ``companies`` row with only the fields that carry a value."""
    host = normalize_domain_host(clean_domain) or normalize_domain_host(domain)
    if host == placeholder_domain:
        host = None
    unknown = set(enrichment) - set(COMPANY_ENRICHMENT_FIELDS)
    if unknown:
        msg = f"Unknown company fields: {sorted(unknown)}"
        raise ValueError(msg)
    return compact({
        "company_key": company_key,
        "name": name.strip() if name else None,
        "domain": normalize_domain_host(domain) or host,
        "clean_domain": host,
        "clean_name": normalize_company_name_for_matching(name),
        "orgnr": normalize_orgnr(orgnr),
        **enrichment,
    })


def person_record(
    *,
    person_key: str,
    full_name: str,
    title: str | None = None,
    email: str | None = None,
    phone: str | None = None,
    linkedin_url: str | None = None,
    company_name: str | None = None,
    company_domain: str | None = None,
) -> dict[str, Any]:
    """Normalized ``people`` row with only the fields that carry a value."""
    return compact({
        "person_key": person_key,
        "full_name": " ".join(full_name.split()),
        "title": title.strip() if title else None,
        "email": normalize_email(email),
        "phone": normalize_phone(phone),
        "linkedin_url": canonicalize_linkedin_url(linkedin_url),
        "normalized_company_name": normalize_company_name_for_matching(company_name),
        "normalized_company_domain": normalize_domain_host(company_domain),
    })


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def find_existing_company(
    store: Store,
    *,
    orgnr: str | None = None,
    clean_domain: str | None = None,
    name: str | None = None,
    placeholder_domain: str = PLACEHOLDER_DOMAIN,
) -> dict | None:
    """Find a stored company by orgnr, clean domain, clean name, then name-slug key.

    The placeholder domain never identifies a company.
    """
    domain = normalize_domain_host(clean_domain)
    if domain == placeholder_domain:
        domain = None
    return store.find_by_identifiers(
        COMPANIES,
        [
            {"orgnr": normalize_orgnr(orgnr)},
            {"clean_domain": domain},
            {"clean_name": normalize_company_name_for_matching(name)},
            {"company_key": name_slug(name)},
        ],
    )


def find_existing_person(
    store: Store,
    *,
    linkedin_url: str | None = None,
    email: str | None = None,
    phone: str | None = None,
    full_name: str | None = None,
    company_domain: str | None = None,
    company_name: str | None = None,
    placeholder_domain: str = PLACEHOLDER_DOMAIN,
) -> dict | None:
    """Find a stored person by LinkedIn, email, phone, then name at the same employer.

    Name matches are exact after whitespace/case normalization.  Two different
    people sharing a name at one employer will be merged.
    """
    domain = normalize_domain_host(company_domain)
    if domain == placeholder_domain:
        domain = None
    person_name = normalize_name_for_key(full_name)
    return store.find_by_identifiers(
        PEOPLE,
        [
            {"linkedin_url": canonicalize_linkedin_url(linkedin_url)},
            {"email": normalize_email(email)},
            {"phone": normalize_phone(phone)},
            {"full_name": person_name, "normalized_company_domain": domain},
            {
                "full_name": person_name,
                "normalized_company_name": normalize_company_name_for_matching(company_name),
            },
        ],
        casefold=("full_name",),
    )


def find_job_post(store: Store, finn_id: str) -> dict | None:
    return store.find_by_identifiers(JOB_POSTS, [{"finn_id": finn_id}])
