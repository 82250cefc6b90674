"""docent ingest — add one source to a knowledge base.

Exactly one source option is required:
  --url URL     remote page (http/https, SSRF-guarded)
  --text TEXT   pasted text
  --file PATH   uploaded file (.pdf, .txt, .md, ...)
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from docent.cli.common import DEFAULT_DB, console, make_pipeline, open_db, require_api_key, setup
from docent.cli.errors import err_ingest_failed, err_source_option, warn_unembedded
from docent.db.models import SourceStatus, SourceType
from docent.db.repository import Repository
from docent.ingest.base import SourceRequest


def ingest_cmd(
    kb: Annotated[
        str,
        typer.Option("--kb", help="Knowledge base ID the source belongs to."),
    ],
    url: Annotated[
        str | None,
        typer.Option("--url", help="Web page to fetch."),
    ] = None,
    text: Annotated[
        str | None,
        typer.Option("--text", help="Text to ingest as-is."),
    ] = None,
    file: Annotated[
        Path | None,
        typer.Option("--file", help="PDF or text file to ingest."),
    ] = None,
    name: Annotated[
        str | None,
        typer.Option("--name", help="Display name (defaults to the URL or file name)."),
    ] = None,
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to the database file (created if missing)."),
    ] = DEFAULT_DB,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log progress at INFO level."),
    ] = False,
) -> None:
    """Extract, chunk and embed one source into a knowledge base."""
    cfg = setup(verbose)

    given = [opt for opt in (url, text, file) if opt is not None]
    if len(given) != 1:
        console.print(err_source_option())
        raise typer.Exit(1)

    request = _build_request(kb, url, text, file, name)
    require_api_key(cfg.embedding.model)

    conn = open_db(db)
    repo = Repository(conn)
    try:
        pipeline = make_pipeline(cfg, repo)
        console.print(f"\n[bold]→ {request.label}[/] [dim]({request.type.value})[/]")

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            transient=True,
            console=console,
        ) as prog:
            task = prog.add_task("Embedding…", total=None)

            def _on_chunk(done: int, total: int, ok: bool) -> None:
                prog.update(task, completed=done, total=total)

            result = pipeline.ingest(request, on_progress=_on_chunk)

        if result.status == SourceStatus.FAILED:
            console.print(err_ingest_failed(result.error_message or "no chunks were embedded"))
            console.print(f"  [dim]source id: {result.source_id}[/]")
            raise typer.Exit(1)

        mark = "[green]✓[/]" if result.status == SourceStatus.COMPLETED else "[yellow]⚠[/]"
        console.print(
            f"  {mark} {result.status.value}: "
            f"{result.succeeded} succeeded, {result.failed} failed"
        )
        console.print(f"  [dim]source id: {result.source_id}[/]")
        if result.failed:
            console.print(warn_unembedded(result.failed))
    finally:
        conn.close()


def _build_request(
    kb: str,
    url: str | None,
    text: str | None,
    file: Path | None,
    name: str | None,
) -> SourceRequest:
    if url is not None:
        return SourceRequest(kb, SourceType.REMOTE_PAGE, name or url, url=url)
    if text is not None:
        return SourceRequest(kb, SourceType.RAW_TEXT, name or "Pasted text", text=text)
    return SourceRequest(kb, SourceType.UPLOADED_FILE, name or file.name, path=str(file))
