"""Administrative merge of duplicate companies already in the store.

Duplicates are stored companies sharing an orgnr, a domain or a clean name.
They arise when a company was first seen without its strongest identifier
and later under another key.  The keeper of each group is the most complete
row; its job posts and people links absorb the duplicates', which are then
deleted.
"""

from __future__ import annotations

from typing import Any

import structlog

from leadgraph.db import Store
from leadgraph.entity_resolution.dedup import IdentifierGroups
from leadgraph.entity_resolution.deterministic import COMPANIES, JOB_POSTS, fill_missing_fields
from leadgraph.entity_resolution.links import COMPANY_PEOPLE
from leadgraph.normalize import PLACEHOLDER_DOMAIN

logger = structlog.get_logger(__name__)

_NOT_MERGED = ("id", "company_key", "created_at", "updated_at")

KEEPER_WEIGHTS: dict[str, int] = {
    "orgnr": 100,
    "clean_domain": 10,
    "proff_url": 5,
    "industry": 1,
    "company_size": 1,
    "location": 1,
    "profit_before_tax": 1,
    "turnover": 1,
}


def keeper_score(row: dict) -> int:
    return sum(weight for col, weight in KEEPER_WEIGHTS.items() if row.get(col) is not None)


def _stored_identifiers(row: dict, placeholder_domain: str) -> list[str]:
    ids = []
    if row.get("orgnr"):
        ids.append(f"orgnr:{row['orgnr']}")
    if row.get("clean_domain") and row["clean_domain"] != placeholder_domain:
        ids.append(f"domain:{row['clean_domain']}")
    if row.get("clean_name"):
        ids.append(f"name:{row['clean_name']}")
    return ids


def find_duplicate_groups(
    store: Store,
    *,
    placeholder_domain: str = PLACEHOLDER_DOMAIN,
) -> list[list[dict]]:
    """Groups of two or more stored companies sharing an identifier.

    Each group is ordered keeper first: highest completeness score, then
    oldest ``created_at``.
    """
    companies = store.select_where(COMPANIES, {})
    groups = IdentifierGroups()
    labels = [
        groups.add(_stored_identifiers(row, placeholder_domain), fallback=f"id:{row['id']}")
        for row in companies
    ]
    grouped: dict[str, list[dict]] = {}
    for label, row in zip(labels, companies):
        grouped.setdefault(groups.find(label), []).append(row)

    duplicates = []
    for rows in grouped.values():
        if len(rows) < 2:
            continue
        rows.sort(key=lambda r: str(r.get("created_at") or ""))
        rows.sort(key=keeper_score, reverse=True)
        duplicates.append(rows)
    return duplicates


def merge_companies(store: Store, keep: dict, duplicate: dict) -> dict[str, Any]:
    """Fold *duplicate* into *keep* and delete it.

    Job posts are re-pointed; people links are copied (skipping triples
    the keeper already has) and removed from the duplicate; the keeper
    gains any field it is missing.
    """
    keep_id, dup_id = keep["id"], duplicate["id"]

    links = store.select_where(COMPANY_PEOPLE, {"company_id": [dup_id]})
    if links:
        store.upsert(
            COMPANY_PEOPLE,
            [{"company_id": keep_id, "person_id": r["person_id"], "role": r["role"]} for r in links],
            ["company_id", "person_id", "role"],
            on_conflict="ignore",
        )
        store.delete_where(COMPANY_PEOPLE, {"company_id": [dup_id]})

    moved_posts = store.update_where(JOB_POSTS, {"company_id": [dup_id]}, {"company_id": keep_id})

    fill = fill_missing_fields(keep, duplicate, exclude=_NOT_MERGED)
    changed = store.update_fields(COMPANIES, keep_id, fill) if fill else []
    store.delete_where(COMPANIES, {"id": [dup_id]})

    logger.info(
        "companies_merged",
        keep_key=keep["company_key"],
        duplicate_key=duplicate["company_key"],
        job_posts_moved=moved_posts,
        links_moved=len(links),
        fields_updated=changed,
    )
    return {
        "keep_key": keep["company_key"],
        "duplicate_key": duplicate["company_key"],
        "job_posts_moved": moved_posts,
        "links_moved": len(links),
        "fields_updated": changed,
    }


def run_duplicate_merge(
    store: Store,
    *,
    apply: bool = False,
    placeholder_domain: str = PLACEHOLDER_DOMAIN,
) -> dict[str, Any]:
    """Preview (default) or apply merges for every duplicate group.

    Each group is merged and committed on its own; a failing group is rolled
    back, logged and counted without stopping the run.
    """
    groups = find_duplicate_groups(store, placeholder_domain=placeholder_domain)
    preview = [
        {
            "keep_key": rows[0]["company_key"],
            "duplicate_keys": [r["company_key"] for r in rows[1:]],
        }
        for rows in groups
    ]
    stats: dict[str, Any] = {"groups": len(groups), "merged": 0, "failed": 0, "preview": preview}
    if not apply:
        logger.info("duplicate_preview", groups=len(groups))
        return stats

    for rows in groups:
        keep = rows[0]
        try:
            for duplicate in rows[1:]:
                merge_companies(store, keep, duplicate)
                keep = {**keep, **fill_missing_fields(keep, duplicate, exclude=_NOT_MERGED)}
            store.commit()
            stats["merged"] += len(rows) - 1
        except Exception as e:
            store.rollback()
            stats["failed"] += 1
            logger.warning("duplicate_merge_failed", keep_key=rows[0]["company_key"], error=str(e))

    logger.info("duplicate_merge_complete", groups=stats["groups"], merged=stats["merged"], failed=stats["failed"])
    return stats
