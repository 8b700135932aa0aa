"""Batch deduplication by shared identifiers.

Used for bulk imports where many rows may describe the same entity before
anything is in the store.  Rows sharing any normalized identifier end up in
one group (union-find over identifiers); each group is then reduced to one
row, starting from its most complete member and filling the remaining
nulls from the others in input order.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Any

import structlog

from leadgraph.normalize import (
    PLACEHOLDER_DOMAIN,
    canonicalize_linkedin_url,
    name_slug,
    normalize_company_name_for_matching,
    normalize_domain_host,
    normalize_email,
    normalize_name_for_comparison,
    normalize_orgnr,
    normalize_phone,
)

logger = structlog.get_logger(__name__)

# Completeness weights follow the key builders' priority order
COMPANY_SCORE_WEIGHTS: dict[str, int] = {"orgnr": 4, "clean_domain": 3, "domain": 2, "name": 1}
PERSON_SCORE_WEIGHTS: dict[str, int] = {"linkedin_url": 4, "email": 2, "phone": 1, "full_name": 1}


class IdentifierGroups:
    """Union-find keyed by identifier strings such as ``"orgnr:912345678"``.

    A group is labelled by the strongest identifier of the first row that
    opened it.  When a row bridges two existing groups, the younger group
    is folded into the older one.
    """

    def __init__(self) -> None:
        self._group_of: dict[str, str] = {}
        self._parent: dict[str, str] = {}
        self._order: dict[str, int] = {}

    def find(self, label: str) -> str:
        root = label
        while self._parent[root] != root:
            root = self._parent[root]
        while self._parent[label] != root:
            self._parent[label], label = root, self._parent[label]
        return root

    def _union(self, a: str, b: str) -> str:
        root_a, root_b = self.find(a), self.find(b)
        if root_a == root_b:
            return root_a
        if self._order[root_b] < self._order[root_a]:
            root_a, root_b = root_b, root_a
        self._parent[root_b] = root_a
        return root_a

    def add(self, identifiers: Sequence[str], fallback: str) -> str:
        """Place a row with *identifiers* (strongest first); return its group label."""
        matched = [self._group_of[i] for i in identifiers if i in self._group_of]
        if matched:
            label = matched[0]
            for other in matched[1:]:
                label = self._union(label, other)
            label = self.find(label)
        else:
            label = identifiers[0] if identifiers else fallback
            if label not in self._parent:
                self._parent[label] = label
                self._order[label] = len(self._order)
            label = self.find(label)
        for identifier in identifiers:
            self._group_of.setdefault(identifier, label)
        return label


def completeness_score(row: Mapping[str, Any], weights: Mapping[str, int]) -> int:
    return sum(weight for col, weight in weights.items() if row.get(col))


def reduce_group(rows: Sequence[Mapping[str, Any]], weights: Mapping[str, int]) -> dict[str, Any]:
    """Collapse duplicate rows into one.

    The highest-scored row (earliest on ties) keeps its own values; every
    null or empty column is then filled from the other rows in order.
    """
    best = max(enumerate(rows), key=lambda pair: (completeness_score(pair[1], weights), -pair[0]))[1]
    merged = dict(best)
    for row in rows:
        for col, value in row.items():
            if merged.get(col) in (None, "") and value not in (None, ""):
                merged[col] = value
    return merged


def group_rows(
    rows: Sequence[Mapping[str, Any]],
    identifiers: Callable[[Mapping[str, Any]], list[str]],
) -> list[list[Mapping[str, Any]]]:
    """Group rows sharing any identifier, preserving first-appearance order."""
    groups = IdentifierGroups()
    labels = [groups.add(identifiers(row), fallback=f"row:{i}") for i, row in enumerate(rows)]

    grouped: dict[str, list[Mapping[str, Any]]] = {}
    for label, row in zip(labels, rows):
        grouped.setdefault(groups.find(label), []).append(row)
    return list(grouped.values())


# ---------------------------------------------------------------------------
# Companies
# ---------------------------------------------------------------------------

def normalize_company_row(
    row: Mapping[str, Any],
    placeholder_domain: str = PLACEHOLDER_DOMAIN,
) -> dict[str, Any]:
    """Normalize the identifying columns of a raw company row."""
    clean_domain = normalize_domain_host(row.get("clean_domain"))
    domain = normalize_domain_host(row.get("domain"))
    return {
        **row,
        "orgnr": normalize_orgnr(row.get("orgnr")),
        "clean_domain": clean_domain if clean_domain != placeholder_domain else None,
        "domain": domain if domain != placeholder_domain else None,
        "clean_name": normalize_company_name_for_matching(row.get("name")),
    }


def company_identifiers(row: Mapping[str, Any]) -> list[str]:
    """Identifiers of a normalized company row, strongest first."""
    ids = []
    if row.get("orgnr"):
        ids.append(f"orgnr:{row['orgnr']}")
    for col in ("clean_domain", "domain"):
        if row.get(col):
            ids.append(f"domain:{row[col]}")
    slug = name_slug(row.get("name"))
    if slug:
        ids.append(f"name:{slug}")
    return list(dict.fromkeys(ids))


def deduplicate_companies(
    rows: Sequence[Mapping[str, Any]],
    placeholder_domain: str = PLACEHOLDER_DOMAIN,
) -> list[dict[str, Any]]:
    normalized = [normalize_company_row(row, placeholder_domain) for row in rows]
    merged = [reduce_group(g, COMPANY_SCORE_WEIGHTS) for g in group_rows(normalized, company_identifiers)]
    logger.info("deduplicated_companies", rows=len(rows), unique=len(merged))
    return merged


# ---------------------------------------------------------------------------
# People
# ---------------------------------------------------------------------------

def normalize_person_row(row: Mapping[str, Any]) -> dict[str, Any]:
    """Normalize the identifying columns of a raw person row."""
    return {
        **row,
        "linkedin_url": canonicalize_linkedin_url(row.get("linkedin_url")),
        "email": normalize_email(row.get("email")),
        "phone": normalize_phone(row.get("phone")),
        "normalized_company_domain": normalize_domain_host(row.get("normalized_company_domain")),
    }


def person_identifiers(row: Mapping[str, Any]) -> list[str]:
    """Identifiers of a normalized person row, strongest first."""
    ids = []
    for col, prefix in (("linkedin_url", "linkedin"), ("email", "email"), ("phone", "phone")):
        if row.get(col):
            ids.append(f"{prefix}:{row[col]}")
    person_name = normalize_name_for_comparison(row.get("full_name"))
    company = normalize_company_name_for_matching(
        row.get("normalized_company_name")
    ) or row.get("normalized_company_domain")
    if person_name and company:
        ids.append(f"name:{company}_{person_name}")
    return ids


def deduplicate_people(rows: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
    normalized = [normalize_person_row(row) for row in rows]
    merged = [reduce_group(g, PERSON_SCORE_WEIGHTS) for g in group_rows(normalized, person_identifiers)]
    logger.info("deduplicated_people", rows=len(rows), unique=len(merged))
    return merged
