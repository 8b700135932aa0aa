#!/usr/bin/env python3
"""CLI script to ingest scraped job postings from a JSON file."""

from __future__ import annotations

import json
from pathlib import Path

import structlog
import typer

from leadgraph.config import get_settings
from leadgraph.db import PostgresStore, get_connection
from leadgraph.pipelines.dataset_sync import ingest_dataset
from leadgraph.pipelines.enrichment_push import EnrichmentWebhook

logger = structlog.get_logger(__name__)
app = typer.Typer()


@app.command()
def main(
    path: Path = typer.Argument(help="JSON file holding one posting or an array of postings"),
    source: str = typer.Option(..., "--source", help="Name of the scraper that produced the file"),
    push: bool = typer.Option(
        True, "--push/--no-push", help="Push ingested posts to the enrichment webhook"
    ),
) -> None:
    """Ingest postings one by one, counting failures instead of stopping."""
    settings = get_settings()
    data = json.loads(path.read_text(encoding="utf-8"))
    items = data if isinstance(data, list) else [data]

    conn = get_connection(settings)
    try:
        webhook = EnrichmentWebhook(settings) if push else None
        summary = ingest_dataset(
            PostgresStore(conn), items, source, settings=settings, webhook=webhook
        )
        logger.info("ingest_complete", source=source, **summary)
    finally:
        conn.close()


if __name__ == "__main__":
    app()
