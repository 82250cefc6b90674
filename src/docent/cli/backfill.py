"""docent backfill — embed chunks that were stored without a vector."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from docent.cli.common import DEFAULT_DB, console, make_pipeline, open_db, require_api_key, setup
from docent.cli.errors import err_no_db, warn_unembedded
from docent.db.repository import Repository


def backfill_cmd(
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
    """Retry embedding for every chunk without a vector."""
    cfg = setup(verbose)

    if not db.exists():
        console.print(err_no_db(str(db)))
        raise typer.Exit(1)

    conn = open_db(db)
    repo = Repository(conn)
    try:
        pending = len(repo.list_unembedded_chunks(kb))
        if pending == 0:
            console.print("[green]✓[/] All chunks already have vectors.")
            return

        require_api_key(cfg.embedding.model)
        pipeline = make_pipeline(cfg, repo)
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            transient=True,
            console=console,
        ) as prog:
            task = prog.add_task("Embedding…", total=pending)

            def _on_chunk(done: int, total: int, ok: bool) -> None:
                prog.update(task, completed=done)

            stats = pipeline.backfill(kb, on_progress=_on_chunk)

        console.print(
            f"[green]✓[/] {stats['processed']} of {stats['total']} chunks embedded"
            + (f", [red]{stats['failed']} failed[/]" if stats["failed"] else "")
        )
        if stats["failed"]:
            console.print(warn_unembedded(stats["failed"]))
            raise typer.Exit(1)
    finally:
        conn.close()
