#!/usr/bin/env python3
"""CLI script to fetch and ingest every configured scraper dataset."""

from __future__ import annotations

import structlog
import typer

from leadgraph.config import get_settings
from leadgraph.db import PostgresStore, get_connection
from leadgraph.pipelines.dataset_sync import run_dataset_sync
from leadgraph.pipelines.enrichment_push import EnrichmentWebhook

logger = structlog.get_logger(__name__)
app = typer.Typer()


@app.command()
def main(
    push: bool = typer.Option(
        True, "--push/--no-push", help="Push ingested posts to the enrichment webhook"
    ),
) -> None:
    """Sync the datasets listed in LG_DATASET_URLS."""
    settings = get_settings()
    if not settings.dataset_urls:
        logger.warning("dataset_sync_skipped", reason="LG_DATASET_URLS is empty")
        raise typer.Exit(code=0)

    conn = get_connection(settings)
    try:
        webhook = EnrichmentWebhook(settings) if push else None
        result = run_dataset_sync(PostgresStore(conn), settings, webhook=webhook)
        for source, counts in result["results"].items():
            logger.info("dataset_source_result", source=source, **counts)
    finally:
        conn.close()


if __name__ == "__main__":
    app()
