#!/usr/bin/env python3
"""CLI script to preview or merge duplicate companies."""

from __future__ import annotations

import structlog
import typer

from leadgraph.config import get_settings
from leadgraph.db import PostgresStore, get_connection
from leadgraph.entity_resolution.merge import run_duplicate_merge

logger = structlog.get_logger(__name__)
app = typer.Typer()


@app.command()
def main(
    apply: bool = typer.Option(False, "--apply", help="Merge the groups instead of previewing them"),
) -> None:
    """List duplicate company groups; with --apply, fold each into its keeper."""
    settings = get_settings()
    conn = get_connection(settings)

    try:
        stats = run_duplicate_merge(
            PostgresStore(conn), apply=apply, placeholder_domain=settings.placeholder_domain
        )
        for group in stats["preview"]:
            logger.info("duplicate_group", **group)
        logger.info(
            "company_merge_complete",
            applied=apply,
            groups=stats["groups"],
            merged=stats["merged"],
            failed=stats["failed"],
        )
    finally:
        conn.close()


if __name__ == "__main__":
    app()
