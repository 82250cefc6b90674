"""docent remove — delete a source with its chunks and index entries.

Usage:
  docent remove --source-id 6f1c...
  docent remove --source-id 6f1c... --yes
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape

from docent.cli.common import DEFAULT_DB, console, make_index, open_db, setup
from docent.cli.errors import err_no_db, err_source_not_found
from docent.db.repository import Repository
from docent.ingest.pipeline import remove_source


def remove_cmd(
    source_id: Annotated[
        str,
        typer.Option("--source-id", "-s", help="ID of the source to remove (see docent status)."),
    ],
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to the database file."),
    ] = DEFAULT_DB,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log progress at INFO level."),
    ] = False,
) -> None:
    """Remove a source and all its chunks from the knowledge base."""
    cfg = setup(verbose)

    if not db.exists():
        console.print(err_no_db(str(db)))
        raise typer.Exit(1)

    conn = open_db(db)
    repo = Repository(conn)
    try:
        existing = repo.get_source(source_id)
        if existing is None:
            console.print(err_source_not_found(source_id))
            raise typer.Exit(0)

        chunk_count = repo.count_chunks_by_source(existing.id)
        console.print(f"\nRemove source: [bold]{escape(existing.name)}[/] ({existing.id})")
        console.print(f"  Knowledge base: {escape(existing.knowledge_base_id)}  |  Chunks: {chunk_count}")

        if not yes:
            if not typer.confirm("Confirm removal?", default=False):
                console.print("[dim]Cancelled.[/]")
                raise typer.Exit(0)

        remove_source(repo, make_index(cfg, repo), existing.id)
        console.print(f"\n[green]✓[/] Removed: {escape(existing.name)}")
        console.print(f"  {chunk_count} chunks deleted")
    finally:
        conn.close()
