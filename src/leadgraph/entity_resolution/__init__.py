"""Identity resolution for companies, people and job posts."""

from __future__ import annotations

from leadgraph.entity_resolution.dedup import (
    deduplicate_companies,
    deduplicate_people,
    group_rows,
    reduce_group,
)
from leadgraph.entity_resolution.deterministic import (
    company_record,
    fill_missing_fields,
    find_existing_company,
    find_existing_person,
    find_job_post,
    merge_sources,
    person_record,
)
from leadgraph.entity_resolution.links import (
    LinkCounts,
    link_contacts,
    upsert_company_people,
    upsert_job_post_people,
)
from leadgraph.entity_resolution.merge import (
    find_duplicate_groups,
    merge_companies,
    run_duplicate_merge,
)
from leadgraph.entity_resolution.resolver import (
    Resolution,
    resolve_company,
    resolve_job_post,
    resolve_person,
)

__all__ = [
    "LinkCounts",
    "Resolution",
    "company_record",
    "deduplicate_companies",
    "deduplicate_people",
    "fill_missing_fields",
    "find_duplicate_groups",
    "find_existing_company",
    "find_existing_person",
    "find_job_post",
    "group_rows",
    "link_contacts",
    "merge_companies",
    "merge_sources",
    "person_record",
    "reduce_group",
    "resolve_company",
    "resolve_job_post",
    "resolve_person",
    "run_duplicate_merge",
    "upsert_company_people",
    "upsert_job_post_people",
]
