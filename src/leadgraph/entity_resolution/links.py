"""Link reconciliation for the company/person and job post/person relations.

Link rows are ``(owner_id, person_id, role)`` triples with no other mutable
payload, so writes are insert-if-absent.  New-versus-existing counts are
always computed the same way: the store is queried for the touched owner
and person ids *before* the write.  Under concurrent writers to the same
triples those counts can credit the wrong batch; the rows themselves stay
correct.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import structlog

from leadgraph.db import Store
from leadgraph.normalize import DECISION_MAKER

logger = structlog.get_logger(__name__)

COMPANY_PEOPLE = "company_people"
JOB_POST_PEOPLE = "job_post_people"

_OWNER_COLUMN = {COMPANY_PEOPLE: "company_id", JOB_POST_PEOPLE: "job_post_id"}


@dataclass
class LinkCounts:
    inserted: int = 0
    existing: int = 0

    def as_dict(self) -> dict[str, int]:
        return {"inserted": self.inserted, "existing": self.existing}


def link_key(row: Mapping[str, Any], owner_column: str) -> tuple:
    return (str(row[owner_column]), str(row["person_id"]), row["role"])


def dedupe_links(rows: Iterable[Mapping[str, Any]], owner_column: str) -> list[dict[str, Any]]:
    """Drop repeated triples, keeping the first occurrence."""
    seen: set[tuple] = set()
    unique = []
    for row in rows:
        key = link_key(row, owner_column)
        if key not in seen:
            seen.add(key)
            unique.append(dict(row))
    return unique


def upsert_links(store: Store, table: str, rows: Sequence[Mapping[str, Any]]) -> LinkCounts:
    """Write link rows to *table*, reporting which triples were new."""
    owner_column = _OWNER_COLUMN[table]
    unique = dedupe_links(rows, owner_column)
    if not unique:
        return LinkCounts()

    present = store.select_where(
        table,
        {
            owner_column: sorted({r[owner_column] for r in unique}, key=str),
            "person_id": sorted({r["person_id"] for r in unique}, key=str),
        },
    )
    existing_keys = {link_key(r, owner_column) for r in present}
    new_rows = [r for r in unique if link_key(r, owner_column) not in existing_keys]

    store.upsert(table, unique, [owner_column, "person_id", "role"], on_conflict="ignore")
    return LinkCounts(inserted=len(new_rows), existing=len(unique) - len(new_rows))


def upsert_company_people(store: Store, rows: Sequence[Mapping[str, Any]]) -> LinkCounts:
    return upsert_links(store, COMPANY_PEOPLE, rows)


def upsert_job_post_people(store: Store, rows: Sequence[Mapping[str, Any]]) -> LinkCounts:
    return upsert_links(store, JOB_POST_PEOPLE, rows)


def get_decision_maker_ids(store: Store, company_id: Any) -> list[Any]:
    rows = store.select_where(COMPANY_PEOPLE, {"company_id": [company_id], "role": [DECISION_MAKER]})
    return [r["person_id"] for r in rows]


def decision_maker_links(
    store: Store,
    *,
    job_post_id: Any,
    company_id: Any,
    batch: Sequence[Mapping[str, Any]],
) -> list[dict[str, Any]]:
    """Links carrying the company's known decision makers onto a job post.

    People already linked to this post as ``decision_maker`` in *batch* are
    left out, so a company's decision makers accumulate across its postings
    without duplicate rows.
    """
    already = {
        str(r["person_id"])
        for r in batch
        if r["role"] == DECISION_MAKER and str(r["job_post_id"]) == str(job_post_id)
    }
    return [
        {"job_post_id": job_post_id, "person_id": person_id, "role": DECISION_MAKER}
        for person_id in get_decision_maker_ids(store, company_id)
        if str(person_id) not in already
    ]


def link_contacts(
    store: Store,
    *,
    company_id: Any,
    job_post_id: Any | None,
    contacts: Sequence[tuple[Any, str]],
) -> dict[str, Any]:
    """Link resolved ``(person_id, role)`` contacts to a company and its job post.

    Company links are written first so decision makers named on this very
    posting are propagated along with earlier ones.
    """
    company_rows = [
        {"company_id": company_id, "person_id": person_id, "role": role}
        for person_id, role in contacts
    ]
    company_counts = upsert_company_people(store, company_rows)

    job_counts = LinkCounts()
    propagated: list[dict[str, Any]] = []
    if job_post_id is not None:
        job_rows = [
            {"job_post_id": job_post_id, "person_id": person_id, "role": role}
            for person_id, role in contacts
        ]
        propagated = decision_maker_links(
            store, job_post_id=job_post_id, company_id=company_id, batch=job_rows
        )
        job_counts = upsert_job_post_people(store, job_rows + propagated)

    logger.debug(
        "contacts_linked",
        company_id=str(company_id),
        job_post_id=str(job_post_id) if job_post_id is not None else None,
        decision_makers_propagated=len(propagated),
    )
    return {
        "company_people": company_counts.as_dict(),
        "job_post_people": job_counts.as_dict(),
        "decision_makers_linked": len(propagated),
    }
