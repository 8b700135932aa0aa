#!/usr/bin/env python3
"""CLI script to apply enrichment results from a JSON file."""

from __future__ import annotations

import json
from pathlib import Path

import structlog
import typer

from leadgraph.config import get_settings
from leadgraph.db import PostgresStore, get_connection
from leadgraph.errors import PayloadValidationError
from leadgraph.pipelines.enrichment_result import apply_enrichment_batch

logger = structlog.get_logger(__name__)
app = typer.Typer()


@app.command()
def main(
    path: Path = typer.Argument(help="JSON file: one result, an array, or {\"items\": [...]}"),
) -> None:
    """Apply each result independently and log a summary."""
    settings = get_settings()
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict) and "items" not in data:
        data = {"items": [data]}
    elif isinstance(data, list):
        data = {"items": data}

    conn = get_connection(settings)
    try:
        result = apply_enrichment_batch(
            PostgresStore(conn), data, placeholder_domain=settings.placeholder_domain
        )
    except PayloadValidationError as e:
        for issue in e.issues:
            logger.error("invalid_enrichment_payload", **issue)
        raise typer.Exit(code=1) from e
    finally:
        conn.close()

    for item in result["results"]:
        if "error" in item:
            logger.warning("enrichment_result_failed", **item)


if __name__ == "__main__":
    app()
