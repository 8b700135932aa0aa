#!/usr/bin/env python3
"""CLI script to push recent job posts to the enrichment webhook."""

from __future__ import annotations

import structlog
import typer

from leadgraph.config import get_settings
from leadgraph.db import PostgresStore, get_connection
from leadgraph.pipelines.enrichment_push import run_enrichment_sync

logger = structlog.get_logger(__name__)
app = typer.Typer()


@app.command()
def main(
    hours: int | None = typer.Option(
        None, help="Look-back window in hours (defaults to LG_RECENT_JOB_POST_HOURS)"
    ),
) -> None:
    """Send every job post created within the look-back window."""
    settings = get_settings()
    if hours is not None:
        settings = settings.model_copy(update={"recent_job_post_hours": hours})

    conn = get_connection(settings)
    try:
        stats = run_enrichment_sync(PostgresStore(conn), settings)
        if stats["failed"]:
            logger.warning("enrichment_sync_partial", failed=stats["failed"])
    finally:
        conn.close()


if __name__ == "__main__":
    app()
