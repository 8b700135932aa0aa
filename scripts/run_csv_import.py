#!/usr/bin/env python3
"""CLI script to bulk import company and people CSV exports."""

from __future__ import annotations

from pathlib import Path

import structlog
import typer

from leadgraph.config import get_settings
from leadgraph.db import PostgresStore, get_connection
from leadgraph.pipelines.csv_import import run_csv_import

logger = structlog.get_logger(__name__)
app = typer.Typer()


@app.command()
def main(
    data_dir: Path = typer.Argument(
        Path("data/import"), help="Directory containing companies*.csv and people*.csv"
    ),
    chunk_size: int | None = typer.Option(None, help="Rows per upsert (defaults to LG_IMPORT_CHUNK_SIZE)"),
) -> None:
    """Deduplicate, key and upsert companies and people, then link them by signals."""
    settings = get_settings()
    if chunk_size is not None:
        settings = settings.model_copy(update={"import_chunk_size": chunk_size})

    conn = get_connection(settings)
    try:
        run_csv_import(PostgresStore(conn), data_dir, settings)
    finally:
        conn.close()


if __name__ == "__main__":
    app()
