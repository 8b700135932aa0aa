"""Ingestion pipelines: scraped postings, scraper datasets, enrichment and bulk imports."""

from __future__ import annotations

from leadgraph.pipelines.csv_import import run_csv_import
from leadgraph.pipelines.dataset_sync import run_dataset_sync
from leadgraph.pipelines.enrichment_push import (
    EnrichmentWebhook,
    build_enrichment_payload,
    run_enrichment_sync,
    schedule_enrichment_push,
)
from leadgraph.pipelines.enrichment_result import (
    apply_enrichment_batch,
    apply_enrichment_result,
)
from leadgraph.pipelines.ingest import ingest_job_posting
from leadgraph.pipelines.normalized_import import import_normalized

__all__ = [
    # Postings
    "ingest_job_posting",
    "run_dataset_sync",
    # Enrichment
    "EnrichmentWebhook",
    "apply_enrichment_batch",
    "apply_enrichment_result",
    "build_enrichment_payload",
    "run_enrichment_sync",
    "schedule_enrichment_push",
    # Bulk imports
    "import_normalized",
    "run_csv_import",
]
