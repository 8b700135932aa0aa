"""Inbound enrichment results: the asynchronous correction channel.

A result is anchored to an ingested job post by ``finn_id``.  Enrichment
attributes (industry, size, financials, titles) are taken as corrections and
overwrite stored values; identity attributes (orgnr, domains, email, phone,
LinkedIn) only fill nulls so a resolved identity is never rewritten.
"""

from __future__ import annotations

from typing import Any

import structlog

from leadgraph.db import Store
from leadgraph.entity_resolution.deterministic import (
    COMPANIES,
    COMPANY_ENRICHMENT_FIELDS,
    PEOPLE,
    compact,
    fill_missing_fields,
    find_existing_person,
    find_job_post,
    person_record,
)
from leadgraph.entity_resolution.links import upsert_company_people, upsert_job_post_people
from leadgraph.errors import NotFoundError
from leadgraph.keys import build_person_key
from leadgraph.normalize import (
    DECISION_MAKER,
    canonicalize_linkedin_url,
    is_valid_person_name,
    normalize_domain_host,
    normalize_email,
    normalize_orgnr,
    normalize_phone,
)
from leadgraph.schemas import (
    EnrichmentBatchPayload,
    EnrichmentCompany,
    EnrichmentPerson,
    EnrichmentResultPayload,
    parse_payload,
)

logger = structlog.get_logger(__name__)


def company_enrichment_update(
    company: dict,
    enrichment: EnrichmentCompany,
    placeholder_domain: str,
) -> dict[str, Any]:
    """Partial ``companies`` row for an enrichment result."""
    host = normalize_domain_host(enrichment.domain)
    if host == placeholder_domain:
        host = None
    identity = fill_missing_fields(
        company,
        {"orgnr": normalize_orgnr(enrichment.orgnr), "domain": host, "clean_domain": host},
    )
    corrections = compact({
        field: getattr(enrichment, field)
        for field in COMPANY_ENRICHMENT_FIELDS
    })
    return {**identity, **corrections}


def person_enrichment_update(person: dict, enrichment: EnrichmentPerson) -> dict[str, Any]:
    """Partial ``people`` row: the title is corrected, identifiers only filled."""
    identity = fill_missing_fields(
        person,
        {
            "email": normalize_email(enrichment.email),
            "phone": normalize_phone(enrichment.phone),
            "linkedin_url": canonicalize_linkedin_url(enrichment.linkedin_url),
        },
    )
    return {**identity, **compact({"title": enrichment.title})}


def _find_person(store: Store, person: EnrichmentPerson, company: dict, placeholder: str) -> dict | None:
    return find_existing_person(
        store,
        linkedin_url=person.linkedin_url,
        email=person.email,
        phone=person.phone,
        full_name=person.full_name,
        company_domain=company.get("clean_domain"),
        company_name=company.get("name"),
        placeholder_domain=placeholder,
    )


def _link_decision_maker(store: Store, company_id: Any, job_post_id: Any, person_id: Any) -> None:
    upsert_company_people(
        store, [{"company_id": company_id, "person_id": person_id, "role": DECISION_MAKER}]
    )
    upsert_job_post_people(
        store, [{"job_post_id": job_post_id, "person_id": person_id, "role": DECISION_MAKER}]
    )


def apply_enrichment_result(
    store: Store,
    payload: EnrichmentResultPayload | dict[str, Any],
    *,
    placeholder_domain: str,
) -> dict[str, Any]:
    """Apply one enrichment result to the store (without committing).

    Raises:
        PayloadValidationError: If the payload is malformed.
        NotFoundError: If no job post (or its company) exists for ``finn_id``.
    """
    if not isinstance(payload, EnrichmentResultPayload):
        payload = parse_payload(EnrichmentResultPayload, payload)
    finn_id = payload.finn_id

    job = find_job_post(store, finn_id)
    company = store.find_by_identifiers(COMPANIES, [{"id": job["company_id"]}]) if job else None
    if job is None or company is None:
        msg = f"No company found for finn_id: {finn_id}"
        raise NotFoundError(msg)

    stats: dict[str, Any] = {
        "finn_id": finn_id,
        "company": {"found": True, "fields_updated": []},
        "decision_makers": {"added": 0, "existing": 0, "skipped": 0, "fields_updated": []},
        "contact_persons": {"updated": 0, "fields_updated": []},
    }

    if payload.company is not None:
        update = company_enrichment_update(company, payload.company, placeholder_domain)
        stats["company"]["fields_updated"] = store.update_fields(COMPANIES, company["id"], update)
        company = {**company, **update}

    for dm in payload.decision_makers:
        existing = _find_person(store, dm, company, placeholder_domain)
        if existing is not None:
            stats["decision_makers"]["existing"] += 1
            _link_decision_maker(store, company["id"], job["id"], existing["id"])
            changed = store.update_fields(PEOPLE, existing["id"], person_enrichment_update(existing, dm))
            stats["decision_makers"]["fields_updated"].extend(f"{dm.full_name}:{f}" for f in changed)
            continue

        if not is_valid_person_name(dm.full_name):
            stats["decision_makers"]["skipped"] += 1
            logger.info("decision_maker_skipped_invalid_name", finn_id=finn_id, full_name=dm.full_name)
            continue

        person_key = build_person_key(
            linkedin_url=dm.linkedin_url,
            email=dm.email,
            phone=dm.phone,
            full_name=dm.full_name,
            company_domain=company.get("clean_domain"),
            company_name=company.get("name"),
            company_key=company["company_key"],
            placeholder_domain=placeholder_domain,
        )
        record = person_record(
            person_key=person_key,
            full_name=dm.full_name,
            title=dm.title,
            email=dm.email,
            phone=dm.phone,
            linkedin_url=dm.linkedin_url,
            company_name=company.get("name"),
            company_domain=company.get("clean_domain"),
        )
        row = store.upsert(PEOPLE, [record], ["person_key"], on_conflict="fill")[0]
        stats["decision_makers"]["added"] += 1
        _link_decision_maker(store, company["id"], job["id"], row["id"])

    for cp in payload.contact_persons:
        existing = _find_person(store, cp, company, placeholder_domain)
        if existing is None:
            continue
        changed = store.update_fields(PEOPLE, existing["id"], person_enrichment_update(existing, cp))
        if changed:
            stats["contact_persons"]["updated"] += 1
            stats["contact_persons"]["fields_updated"].extend(f"{cp.full_name}:{f}" for f in changed)

    logger.info(
        "enrichment_applied",
        finn_id=finn_id,
        company_fields=stats["company"]["fields_updated"],
        decision_makers_added=stats["decision_makers"]["added"],
        contact_persons_updated=stats["contact_persons"]["updated"],
    )
    return stats


def apply_enrichment_batch(
    store: Store,
    payload: EnrichmentBatchPayload | dict[str, Any],
    *,
    placeholder_domain: str,
) -> dict[str, Any]:
    """Apply up to 100 results, each committed or rolled back on its own.

    Returns
    -------
    dict
        ``{"summary": {...}, "results": [...]}``; failed items carry an
        ``error`` entry instead of stats.
    """
    if not isinstance(payload, EnrichmentBatchPayload):
        payload = parse_payload(EnrichmentBatchPayload, payload)

    results: list[dict[str, Any]] = []
    for i, item in enumerate(payload.items):
        try:
            stats = apply_enrichment_result(store, item, placeholder_domain=placeholder_domain)
            store.commit()
        except Exception as e:
            store.rollback()
            logger.warning("enrichment_item_failed", index=i, finn_id=item.finn_id, error=str(e))
            results.append({"finn_id": item.finn_id, "error": str(e)})
            continue
        results.append(stats)

    ok = [r for r in results if "error" not in r]
    summary = {
        "total": len(results),
        "successful": len(ok),
        "failed": len(results) - len(ok),
        "companies_enriched": sum(1 for r in ok if r["company"]["fields_updated"]),
        "decision_makers_added": sum(r["decision_makers"]["added"] for r in ok),
        "contact_persons_updated": sum(r["contact_persons"]["updated"] for r in ok),
    }
    logger.info("enrichment_batch_complete", **summary)
    return {"summary": summary, "results": results}
