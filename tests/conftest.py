"""Shared fixtures: an in-memory store with the same semantics as PostgresStore."""

from __future__ import annotations

import copy
import uuid
from datetime import datetime, timezone

import pytest

from leadgraph.config import Settings
from leadgraph.db import CONFLICT_MODES, collapse_by_key

UNIQUE_KEYS = {
    "companies": ("company_key",),
    "people": ("person_key",),
    "job_posts": ("finn_id",),
    "company_people": ("company_id", "person_id", "role"),
    "job_post_people": ("job_post_id", "person_id", "role"),
}
# Link tables have a composite primary key and no surrogate id
_HAS_ID = {"companies", "people", "job_posts"}


class InMemoryStore:
    """Dict-backed store honouring unique keys, conflict modes and change tracking.

    ``commit`` snapshots the tables and ``rollback`` restores the last
    snapshot, so partial-failure paths can be asserted on.
    """

    def __init__(self) -> None:
        self.tables: dict[str, list[dict]] = {name: [] for name in UNIQUE_KEYS}
        self.commits = 0
        self.rollbacks = 0
        self.now = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)
        self._snapshot = copy.deepcopy(self.tables)

    # -- helpers -------------------------------------------------------------

    def rows(self, table: str) -> list[dict]:
        return self.tables[table]

    def get(self, table: str, **where) -> dict | None:
        for row in self.tables[table]:
            if all(row.get(k) == v for k, v in where.items()):
                return row
        return None

    def insert(self, table: str, **values) -> dict:
        """Test shortcut: insert a row directly, bypassing conflict handling."""
        row = self._new_row(table, values)
        self.tables[table].append(row)
        return dict(row)

    def _new_row(self, table: str, values: dict) -> dict:
        row = dict(values)
        if table in _HAS_ID:
            row.setdefault("id", str(uuid.uuid4()))
            row.setdefault("updated_at", self.now)
        row.setdefault("created_at", self.now)
        return row

    # -- Store interface -----------------------------------------------------

    def find_by_identifiers(self, table, predicates, *, casefold=()):
        folded = set(casefold)
        for group in predicates:
            if not group or any(v is None for v in group.values()):
                continue
            for row in self.tables[table]:
                if all(
                    (str(row.get(c) or "").lower() == str(v).lower())
                    if c in folded
                    else row.get(c) == v
                    for c, v in group.items()
                ):
                    return dict(row)
        return None

    def select_where(self, table, filters):
        return [
            dict(row)
            for row in self.tables[table]
            if all(row.get(c) in list(values) for c, values in filters.items())
        ]

    def select_since(self, table, column, since):
        return [dict(r) for r in self.tables[table] if r.get(column) and r[column] >= since]

    def upsert(self, table, rows, conflict_columns, *, on_conflict="fill"):
        if on_conflict not in CONFLICT_MODES:
            raise ValueError(on_conflict)
        written = []
        for incoming in collapse_by_key(rows, conflict_columns):
            existing = self.get(table, **{c: incoming[c] for c in conflict_columns})
            if existing is None:
                row = self._new_row(table, incoming)
                self.tables[table].append(row)
                written.append(dict(row))
                continue
            if on_conflict == "ignore":
                continue
            for col, value in incoming.items():
                if value is None or col in conflict_columns:
                    continue
                if on_conflict == "prefer_incoming" or existing.get(col) is None:
                    existing[col] = value
            written.append(dict(existing))
        return written

    def update_fields(self, table, row_id, partial):
        row = self.get(table, id=row_id)
        if row is None:
            return []
        changed = [c for c, v in partial.items() if row.get(c) != v]
        for c in changed:
            row[c] = partial[c]
        return changed

    def update_where(self, table, filters, values):
        matched = [
            row for row in self.tables[table]
            if all(row.get(c) in list(v) for c, v in filters.items())
        ]
        for row in matched:
            row.update(values)
        return len(matched)

    def delete_where(self, table, filters):
        keep = [
            row for row in self.tables[table]
            if not all(row.get(c) in list(v) for c, v in filters.items())
        ]
        removed = len(self.tables[table]) - len(keep)
        self.tables[table] = keep
        return removed

    def commit(self):
        self.commits += 1
        self._snapshot = copy.deepcopy(self.tables)

    def rollback(self):
        self.rollbacks += 1
        self.tables = copy.deepcopy(self._snapshot)


@pytest.fixture()
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        _env_file=None,
        database_url="postgresql://localhost/test",
        enrichment_webhook_url="",
        enrichment_batch_delay=0,
        dataset_urls={},
    )


@pytest.fixture()
def job_payload() -> dict:
    """The canonical posting: one company with a domain, one phone-only contact."""
    return {
        "url": "https://www.finn.no/job/ad/445216243",
        "title": "Elektroingeniør",
        "description": "Vi søker en erfaren ingeniør.\n\nSøk i dag.",
        "company": "ACME Energy",
        "domain": "https://acme-energy.no",
        "contactPersons": [{"name": "Kari Nordmann", "phoneNumber": "+47 99988877"}],
    }
