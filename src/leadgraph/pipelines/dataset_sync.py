"""Scheduled sync of scraper datasets.

Each configured source publishes its latest run as a JSON array of
postings.  Items are ingested one at a time; a failing item is rolled back,
logged and counted, and never stops the rest of the dataset.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from leadgraph.config import Settings
from leadgraph.db import Store
from leadgraph.pipelines.enrichment_push import EnrichmentWebhook
from leadgraph.pipelines.ingest import ingest_job_posting

logger = structlog.get_logger(__name__)


def fetch_dataset(client: httpx.Client, url: str) -> list[dict]:
    """Download one dataset.

    Raises:
        httpx.HTTPError: On transport errors or a non-2xx status.
        ValueError: If the body is not a JSON array.
    """
    resp = client.get(url)
    resp.raise_for_status()
    items = resp.json()
    if not isinstance(items, list):
        msg = f"Dataset payload is not an array: {url}"
        raise ValueError(msg)
    return items


def ingest_dataset(
    store: Store,
    items: list[dict],
    source: str,
    *,
    settings: Settings,
    webhook: EnrichmentWebhook | None = None,
) -> dict[str, int]:
    """Ingest every item under *source*. Returns ``{ok, failed, total}``."""
    ok = failed = 0
    for i, item in enumerate(items):
        try:
            ingest_job_posting(store, item, source, settings=settings, webhook=webhook)
            ok += 1
        except Exception as e:
            store.rollback()
            failed += 1
            logger.warning("dataset_item_failed", source=source, index=i, error=str(e))
    return {"ok": ok, "failed": failed, "total": len(items)}


def run_dataset_sync(
    store: Store,
    settings: Settings,
    *,
    client: httpx.Client | None = None,
    webhook: EnrichmentWebhook | None = None,
) -> dict[str, Any]:
    """Fetch and ingest each dataset in ``settings.dataset_urls``.

    A dataset that cannot be fetched yields an all-zero result for its source.

    Returns
    -------
    dict
        ``{"results": {source: {ok, failed, total}}, "summary": {total_ok,
        total_failed, total_processed}}``
    """
    own_client = client is None
    client = client or httpx.Client(timeout=60.0, headers={"Accept": "application/json"})
    results: dict[str, dict[str, int]] = {}
    try:
        for source, url in settings.dataset_urls.items():
            if not url:
                continue
            try:
                items = fetch_dataset(client, url)
            except (httpx.HTTPError, ValueError) as e:
                logger.error("dataset_fetch_failed", source=source, error=str(e))
                results[source] = {"ok": 0, "failed": 0, "total": 0}
                continue
            logger.info("dataset_fetched", source=source, items=len(items))
            results[source] = ingest_dataset(
                store, items, source, settings=settings, webhook=webhook
            )
    finally:
        if own_client:
            client.close()

    summary = {
        "total_ok": sum(r["ok"] for r in results.values()),
        "total_failed": sum(r["failed"] for r in results.values()),
        "total_processed": sum(r["total"] for r in results.values()),
    }
    logger.info("dataset_sync_complete", **summary)
    return {"results": results, "summary": summary}
