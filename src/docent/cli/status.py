"""docent status — sources with their status, chunk and vector counts."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from docent.cli.common import DEFAULT_DB, console, open_db, setup
from docent.cli.errors import err_no_db, warn_unembedded
from docent.db.models import SourceStatus
from docent.db.repository import Repository

_STATUS_STYLE = {
    SourceStatus.PENDING: "dim",
    SourceStatus.PROCESSING: "cyan",
    SourceStatus.COMPLETED: "green",
    SourceStatus.COMPLETED_WITH_ERRORS: "yellow",
    SourceStatus.FAILED: "red",
}


def status_cmd(
    kb: Annotated[
        str | None,
        typer.Option("--kb", help="Only this knowledge base (default: all)."),
    ] = None,
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to the database file."),
    ] = DEFAULT_DB,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log progress at INFO level."),
    ] = False,
) -> None:
    """Show every source with its status, chunk count and embedded count."""
    setup(verbose)

    if not db.exists():
        console.print(err_no_db(str(db)))
        raise typer.Exit(1)

    conn = open_db(db)
    repo = Repository(conn)
    try:
        sources = repo.list_sources(kb)
        if not sources:
            console.print(
                Panel(
                    "[dim]No sources ingested yet.[/]\n"
                    "  Run:  docent ingest --kb <id> --url <url>",
                    title="[bold]Knowledge Base[/]",
                    expand=False,
                )
            )
            return

        table = Table(title="Sources")
        table.add_column("ID", style="dim", no_wrap=True)
        table.add_column("KB")
        table.add_column("Name")
        table.add_column("Type")
        table.add_column("Status")
        table.add_column("Chunks", justify="right")
        table.add_column("Embedded", justify="right")
        table.add_column("Error", style="dim")

        missing = 0
        for source in sources:
            chunks = repo.count_chunks_by_source(source.id)
            embedded = repo.count_embedded_by_source(source.id)
            missing += chunks - embedded
            style = _STATUS_STYLE.get(source.status, "")
            table.add_row(
                source.id,
                escape(source.knowledge_base_id),
                escape(source.name),
                source.type.value,
                f"[{style}]{source.status.value}[/]" if style else source.status.value,
                str(chunks),
                str(embedded),
                escape(source.error_message or ""),
            )
        console.print(table)
        if missing:
            console.print(warn_unembedded(missing))
    finally:
        conn.close()
