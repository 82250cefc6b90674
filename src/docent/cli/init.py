"""docent init — create the database and a docent.yaml template.

Creates (in the current directory unless --db points elsewhere):
  .docent.db    — empty knowledge base with schema
  docent.yaml   — project config template (never overwritten)
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from docent.cli.common import DEFAULT_DB, console, open_db, setup
from docent.config import write_project_config


def init_cmd(
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to the database file."),
    ] = DEFAULT_DB,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log progress at INFO level."),
    ] = False,
) -> None:
    """Create the docent database and a docent.yaml template."""
    setup(verbose)

    existed = db.exists()
    conn = open_db(db)
    conn.close()
    if existed:
        console.print(f"[yellow]⚠[/]  {db} already exists; schema is up to date.")
    else:
        console.print(f"  [green]✓[/] {db}")

    written = write_project_config(Path.cwd())
    if written is None:
        console.print("  [dim]docent.yaml already present, left unchanged[/]")
    else:
        console.print(f"  [green]✓[/] {written.name}")

    console.print(
        "\nNext:\n"
        "  export OPENAI_API_KEY=sk-...\n"
        "  docent ingest --kb docs --url https://example.com/guide"
    )
