"""docent rich error messages: actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from docent.cli.errors import err_no_api_key, err_no_db
    console.print(err_no_api_key("openai"))
    raise typer.Exit(1)
"""

from __future__ import annotations

from rich.markup import escape

_ENV_MAP = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "azure": "AZURE_API_KEY",
}


def err_no_api_key(provider: str) -> str:
    """No API key for *provider*.

    Example:
        No API key for 'openai'. Set:  export OPENAI_API_KEY=sk-...
    """
    env_var = _ENV_MAP.get(provider.lower(), f"{provider.upper()}_API_KEY")
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=sk-..."
    )


def err_no_db(db_path: str = ".docent.db") -> str:
    """No database at *db_path*."""
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  docent init"
    )


def err_config(message: str) -> str:
    """docent.yaml or the global config is invalid."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {escape(message)}\n"
        "  Fix docent.yaml (or ~/.docent/config.yaml) and retry."
    )


def err_source_option() -> str:
    """ingest needs exactly one of --url / --text / --file."""
    return (
        "[red]Error:[/] Give exactly one source: --url URL, --text TEXT or --file PATH.\n"
        "  Example:  docent ingest --kb docs --url https://example.com/guide"
    )


def err_ingest_failed(message: str) -> str:
    """Source ended in status failed."""
    return (
        f"[red]✗ Failed:[/] {escape(message)}\n"
        "  Check the source and run the ingest again."
    )


def err_chat_failed(user_message: str, detail: str) -> str:
    """The chat request failed; show the end-user fallback plus the cause."""
    return (
        f"[red]Error:[/] {escape(user_message)}\n"
        f"  [dim]{escape(detail)}[/]\n"
        "  Check your API key and network, then retry."
    )


def err_source_not_found(source_id: str) -> str:
    """Source not found in database."""
    return (
        f"[yellow]Source not found:[/] '{escape(source_id)}' is not in the database.\n"
        "  Run:  docent status  to see all ingested sources."
    )


def warn_unembedded(count: int) -> str:
    """Shown after ingest/status when chunks without vectors exist."""
    return (
        f"[yellow]⚠[/] {count} chunk{'s' if count != 1 else ''} without a vector.\n"
        "  Run:  docent backfill  to retry embedding them."
    )
