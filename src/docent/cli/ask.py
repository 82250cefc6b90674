"""docent ask — answer a question from a knowledge base.

With --dry-run only retrieval runs: the ranked chunks (with cosine similarity)
and the assembled context are printed, nothing is generated or stored.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from docent.cli.common import DEFAULT_DB, console, make_retriever, open_db, require_api_key, setup
from docent.cli.errors import err_chat_failed, err_no_db
from docent.db.repository import Repository
from docent.errors import ChatError, ServiceError
from docent.rag.assembler import assemble
from docent.rag.chat import ChatService
from docent.rag.generator import GeneratorConfig, ResponseGenerator
from docent.rag.history import ConversationHistoryManager

_PREVIEW_CHARS = 90


def ask_cmd(
    message: Annotated[str, typer.Argument(help="The question to answer.")],
    kb: Annotated[
        str,
        typer.Option("--kb", help="Knowledge base ID to answer from."),
    ],
    session: Annotated[
        str,
        typer.Option("--session", help="Conversation session ID (history is kept per session)."),
    ],
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Show ranked chunks and context without generating."),
    ] = False,
    db: Annotated[
        Path,
        typer.Option("--db", help="Path to the database file."),
    ] = DEFAULT_DB,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log progress at INFO level."),
    ] = False,
) -> None:
    """Answer MESSAGE using the knowledge base and the session's recent history."""
    cfg = setup(verbose)

    if not db.exists():
        console.print(err_no_db(str(db)))
        raise typer.Exit(1)
    if not message.strip() or not session.strip():
        console.print("[red]Error:[/] MESSAGE and --session must not be empty.")
        raise typer.Exit(1)

    require_api_key(cfg.embedding.model)
    if not dry_run:
        require_api_key(cfg.generation.model)

    conn = open_db(db)
    repo = Repository(conn)
    try:
        retriever = make_retriever(cfg, repo)
        if dry_run:
            _show_dry_run(retriever, message, kb, cfg.retrieval.token_budget, cfg.generation.model)
            return

        service = ChatService(
            repo,
            retriever,
            ResponseGenerator(
                GeneratorConfig(
                    model=cfg.generation.model,
                    temperature=cfg.generation.temperature,
                    max_tokens=cfg.generation.max_tokens,
                )
            ),
            history=ConversationHistoryManager(repo, cfg.history.limit),
            token_budget=cfg.retrieval.token_budget,
        )
        try:
            reply = service.reply(kb, session, message)
        except ChatError as exc:
            console.print(err_chat_failed(exc.user_message, str(exc)))
            raise typer.Exit(1) from exc

        console.print(Markdown(reply.content))
        console.print(f"\n[dim]{len(reply.chunks)} chunk(s) used · session {escape(session)}[/]")
    finally:
        conn.close()


def _show_dry_run(retriever, message: str, kb: str, token_budget: int, model: str) -> None:
    try:
        ranked = retriever.retrieve_scored(message, kb)
    except ServiceError as exc:
        console.print(err_chat_failed("Could not embed the question.", str(exc)))
        raise typer.Exit(1) from exc

    table = Table(title=f"Ranked chunks ({len(ranked)})")
    table.add_column("#", justify="right")
    table.add_column("Similarity", justify="right")
    table.add_column("Source")
    table.add_column("Preview")
    for i, sc in enumerate(ranked, start=1):
        meta = sc.chunk.metadata_obj
        preview = sc.chunk.content[:_PREVIEW_CHARS].replace("\n", " ")
        table.add_row(
            str(i),
            f"{sc.similarity:.3f}",
            escape(f"{meta.source} [{meta.chunk_index + 1}/{meta.total_chunks}]"),
            escape(preview),
        )
    console.print(table)

    context = assemble([sc.chunk.content for sc in ranked], token_budget=token_budget, model=model)
    console.print(Panel(escape(context), title="[bold]Context[/]", expand=False))
