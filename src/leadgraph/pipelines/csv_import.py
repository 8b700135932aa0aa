"""Bulk import of company and person CSV exports.

Reads every ``companies*.csv`` and ``people*.csv`` in a directory, collapses
duplicate rows with the deduplication engine, rebuilds natural keys and
upserts in chunks.  Company/person links are then inferred from signals:
the person's email domain or company domain matching a company domain, or
their company name matching a company's clean name.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import pandas as pd
import structlog

from leadgraph.config import Settings
from leadgraph.db import Store
from leadgraph.entity_resolution.dedup import deduplicate_companies, deduplicate_people
from leadgraph.entity_resolution.deterministic import (
    COMPANIES,
    COMPANY_ENRICHMENT_FIELDS,
    PEOPLE,
    company_record,
    person_record,
)
from leadgraph.entity_resolution.links import upsert_company_people
from leadgraph.errors import KeyDerivationError
from leadgraph.keys import build_company_key, build_person_key
from leadgraph.normalize import CONTACT_PERSON, is_valid_person_name, normalize_domain_host

logger = structlog.get_logger(__name__)

COMPANY_FILE_PATTERN = "companies*.csv"
PEOPLE_FILE_PATTERN = "people*.csv"


def read_csv_dir(directory: Path, pattern: str) -> list[dict[str, Any]]:
    """Read and concatenate every CSV in *directory* matching *pattern*.

    Values are stripped strings; blanks become ``None``.
    """
    files = sorted(directory.glob(pattern))
    if not files:
        logger.warning("csv_files_not_found", directory=str(directory), pattern=pattern)
        return []

    rows: list[dict[str, Any]] = []
    for path in files:
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
        df.columns = [c.strip().lower() for c in df.columns]
        df = df.apply(lambda col: col.str.strip()).astype(object)
        df = df.where(df != "", None)
        records = df.to_dict(orient="records")
        logger.info("csv_file_read", file=path.name, rows=len(records))
        rows.extend(records)
    return rows


def _chunks(rows: Sequence[dict], size: int):
    for start in range(0, len(rows), size):
        yield rows[start : start + size]


def write_in_chunks(
    store: Store,
    rows: Sequence[dict],
    chunk_size: int,
    write: Callable[[Sequence[dict]], list[dict]],
    label: str,
) -> tuple[list[dict], int]:
    """Write and commit *rows* chunk by chunk.

    A failing chunk is rolled back and counted; the remaining chunks still
    run.  Returns the written rows and the number of rows that failed.
    """
    written: list[dict] = []
    failed = 0
    for i, batch in enumerate(_chunks(rows, chunk_size)):
        try:
            result = write(batch)
            store.commit()
        except Exception as e:
            store.rollback()
            failed += len(batch)
            logger.warning("csv_chunk_failed", table=label, chunk=i, rows=len(batch), error=str(e))
            continue
        written.extend(result)
    return written, failed


# ---------------------------------------------------------------------------
# Companies
# ---------------------------------------------------------------------------

def company_import_records(
    rows: Sequence[dict[str, Any]],
    placeholder_domain: str,
) -> tuple[list[dict[str, Any]], int]:
    """Deduplicated, keyed ``companies`` rows and the number of rows skipped."""
    records = []
    skipped = 0
    for row in deduplicate_companies(rows, placeholder_domain):
        try:
            key = build_company_key(
                orgnr=row.get("orgnr"),
                clean_domain=row.get("clean_domain"),
                domain_host=row.get("domain"),
                name=row.get("name"),
                placeholder_domain=placeholder_domain,
            )
        except KeyDerivationError:
            key = row.get("company_key")
        if not key or not row.get("name"):
            skipped += 1
            logger.warning("company_row_skipped", company_key=row.get("company_key"))
            continue
        records.append(
            company_record(
                company_key=key,
                name=row["name"],
                domain=row.get("domain"),
                clean_domain=row.get("clean_domain"),
                orgnr=row.get("orgnr"),
                placeholder_domain=placeholder_domain,
                **{f: row.get(f) for f in COMPANY_ENRICHMENT_FIELDS},
            )
        )
    return records, skipped


# ---------------------------------------------------------------------------
# People
# ---------------------------------------------------------------------------

def person_import_records(
    rows: Sequence[dict[str, Any]],
    placeholder_domain: str,
) -> tuple[list[dict[str, Any]], int]:
    """Deduplicated, keyed ``people`` rows and the number of rows skipped.

    Rows whose name is not at least two words are skipped, as are rows with
    no identifier and no company to anchor the name.
    """
    records = []
    skipped = 0
    for row in deduplicate_people(rows):
        name = row.get("full_name")
        if not is_valid_person_name(name):
            skipped += 1
            continue
        try:
            key = build_person_key(
                linkedin_url=row.get("linkedin_url"),
                email=row.get("email"),
                phone=row.get("phone"),
                full_name=name,
                company_domain=row.get("normalized_company_domain"),
                company_name=row.get("normalized_company_name"),
                placeholder_domain=placeholder_domain,
            )
        except KeyDerivationError as e:
            skipped += 1
            logger.warning("person_row_skipped", full_name=name, error=str(e))
            continue
        records.append(
            person_record(
                person_key=key,
                full_name=name,
                title=row.get("title"),
                email=row.get("email"),
                phone=row.get("phone"),
                linkedin_url=row.get("linkedin_url"),
                company_name=row.get("normalized_company_name"),
                company_domain=row.get("normalized_company_domain"),
            )
        )
    return records, skipped


# ---------------------------------------------------------------------------
# Signal-based links
# ---------------------------------------------------------------------------

def _email_domain(email: str | None) -> str | None:
    if not email or "@" not in email:
        return None
    return normalize_domain_host(email.rsplit("@", 1)[1])


def company_people_from_signals(
    companies: Sequence[dict[str, Any]],
    people: Sequence[dict[str, Any]],
) -> list[dict[str, Any]]:
    """``contact_person`` links for people whose domain or company name matches a company."""
    by_domain: dict[str, Any] = {}
    by_name: dict[str, Any] = {}
    for company in companies:
        for col in ("clean_domain", "domain"):
            host = normalize_domain_host(company.get(col))
            if host:
                by_domain[host] = company["id"]
        if company.get("clean_name"):
            by_name[company["clean_name"]] = company["id"]

    links = []
    for person in people:
        domain = _email_domain(person.get("email")) or person.get("normalized_company_domain")
        company_id = by_domain.get(domain) if domain else None
        if company_id is None and person.get("normalized_company_name"):
            company_id = by_name.get(person["normalized_company_name"])
        if company_id is not None:
            links.append({"company_id": company_id, "person_id": person["id"], "role": CONTACT_PERSON})
    return links


def run_csv_import(store: Store, directory: Path, settings: Settings) -> dict[str, Any]:
    """Import every company and people CSV in *directory*.

    Returns
    -------
    dict
        Per-table ``{rows, unique, written, skipped, failed}`` plus the
        ``company_people`` ``{inserted, existing, failed}`` link counts.
    """
    placeholder = settings.placeholder_domain
    size = settings.import_chunk_size

    company_rows = read_csv_dir(directory, COMPANY_FILE_PATTERN)
    company_records, companies_skipped = company_import_records(company_rows, placeholder)
    companies, companies_failed = write_in_chunks(
        store,
        company_records,
        size,
        lambda batch: store.upsert(COMPANIES, batch, ["company_key"], on_conflict="fill"),
        COMPANIES,
    )

    people_rows = read_csv_dir(directory, PEOPLE_FILE_PATTERN)
    person_records, people_skipped = person_import_records(people_rows, placeholder)
    people, people_failed = write_in_chunks(
        store,
        person_records,
        size,
        lambda batch: store.upsert(PEOPLE, batch, ["person_key"], on_conflict="fill"),
        PEOPLE,
    )

    links = company_people_from_signals(companies, people)
    link_counts = {"inserted": 0, "existing": 0, "failed": 0}
    for i, batch in enumerate(_chunks(links, size)):
        try:
            counts = upsert_company_people(store, batch)
            store.commit()
        except Exception as e:
            store.rollback()
            link_counts["failed"] += len(batch)
            logger.warning(
                "csv_chunk_failed", table="company_people", chunk=i, rows=len(batch), error=str(e)
            )
            continue
        link_counts["inserted"] += counts.inserted
        link_counts["existing"] += counts.existing

    stats = {
        "companies": {
            "rows": len(company_rows),
            "unique": len(company_records),
            "written": len(companies),
            "skipped": companies_skipped,
            "failed": companies_failed,
        },
        "people": {
            "rows": len(people_rows),
            "unique": len(person_records),
            "written": len(people),
            "skipped": people_skipped,
            "failed": people_failed,
        },
        "company_people": link_counts,
    }
    logger.info("csv_import_complete", **stats)
    return stats
