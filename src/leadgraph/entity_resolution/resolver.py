"""Entity resolution orchestrator.

Maps one incoming company, person or job post onto the store: reuse an
existing row found under any identifier, otherwise insert under the freshly
computed natural key.

Inserts are optimistic.  Two concurrent requests for a genuinely new entity
may both miss on lookup; the unique key turns the second insert into an
update (``ON CONFLICT``), so the store still ends up with one merged row.
Only the inserted/updated accounting may credit the wrong request.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog

from leadgraph.db import Store
from leadgraph.entity_resolution.deterministic import (
    COMPANIES,
    JOB_POSTS,
    PEOPLE,
    fill_missing_fields,
    find_existing_company,
    find_existing_person,
    find_job_post,
    merge_sources,
)
from leadgraph.normalize import PLACEHOLDER_DOMAIN

logger = structlog.get_logger(__name__)


@dataclass
class Resolution:
    """Outcome of resolving one entity against the store."""

    id: Any
    key: str
    is_new: bool
    fields_updated: list[str] = field(default_factory=list)
    row: dict = field(default_factory=dict)


def resolve_company(
    store: Store,
    record: Mapping[str, Any],
    *,
    placeholder_domain: str = PLACEHOLDER_DOMAIN,
) -> Resolution:
    """Resolve a normalized company row (see ``company_record``).

    Lookup order: orgnr, clean domain, clean name, name-slug key.  A match
    only gains fields it is missing; ``company_key`` of the match is kept.
    """
    existing = find_existing_company(
        store,
        orgnr=record.get("orgnr"),
        clean_domain=record.get("clean_domain"),
        name=record.get("name"),
        placeholder_domain=placeholder_domain,
    )
    if existing is not None:
        fill = fill_missing_fields(existing, record, exclude=("company_key",))
        changed = store.update_fields(COMPANIES, existing["id"], fill) if fill else []
        logger.debug(
            "company_matched",
            company_key=existing["company_key"],
            incoming_key=record["company_key"],
            fields_updated=changed,
        )
        return Resolution(
            id=existing["id"],
            key=existing["company_key"],
            is_new=False,
            fields_updated=changed,
            row={**existing, **fill},
        )

    rows = store.upsert(COMPANIES, [record], ["company_key"], on_conflict="fill")
    row = rows[0]
    logger.debug("company_inserted", company_key=row["company_key"])
    return Resolution(id=row["id"], key=row["company_key"], is_new=True, row=row)


def resolve_person(
    store: Store,
    record: Mapping[str, Any],
    *,
    placeholder_domain: str = PLACEHOLDER_DOMAIN,
) -> Resolution:
    """Resolve a normalized person row (see ``person_record``).

    Lookup order: LinkedIn, email, phone, (name, company domain),
    (name, company name).
    """
    existing = find_existing_person(
        store,
        linkedin_url=record.get("linkedin_url"),
        email=record.get("email"),
        phone=record.get("phone"),
        full_name=record.get("full_name"),
        company_domain=record.get("normalized_company_domain"),
        company_name=record.get("normalized_company_name"),
        placeholder_domain=placeholder_domain,
    )
    if existing is not None:
        fill = fill_missing_fields(existing, record, exclude=("person_key",))
        changed = store.update_fields(PEOPLE, existing["id"], fill) if fill else []
        return Resolution(
            id=existing["id"],
            key=existing["person_key"],
            is_new=False,
            fields_updated=changed,
            row={**existing, **fill},
        )

    rows = store.upsert(PEOPLE, [record], ["person_key"], on_conflict="fill")
    row = rows[0]
    return Resolution(id=row["id"], key=row["person_key"], is_new=True, row=row)


def _merge_job_source(store: Store, existing: dict, source: str | None) -> Resolution:
    merged = merge_sources(existing.get("source"), source)
    changed: list[str] = []
    if merged != existing.get("source"):
        changed = store.update_fields(JOB_POSTS, existing["id"], {"source": merged})
    return Resolution(
        id=existing["id"],
        key=existing["finn_id"],
        is_new=False,
        fields_updated=changed,
        row={**existing, "source": merged},
    )


def resolve_job_post(store: Store, record: Mapping[str, Any]) -> Resolution:
    """Insert a job post, or merge its ``source`` into the existing one.

    Nothing but ``source`` changes on an existing post.
    """
    finn_id = record["finn_id"]
    existing = find_job_post(store, finn_id)
    if existing is not None:
        return _merge_job_source(store, existing, record.get("source"))

    row = dict(record)
    row["source"] = merge_sources(record.get("source"))
    rows = store.upsert(JOB_POSTS, [row], ["finn_id"], on_conflict="ignore")
    if rows:
        return Resolution(id=rows[0]["id"], key=finn_id, is_new=True, row=rows[0])

    # A concurrent request inserted the same finn_id after our lookup
    existing = find_job_post(store, finn_id)
    if existing is None:
        msg = f"job post {finn_id} vanished after conflicting insert"
        raise RuntimeError(msg)
    logger.info("job_post_insert_conflict", finn_id=finn_id)
    return _merge_job_source(store, existing, record.get("source"))
