"""docent CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from docent.cli.ask import ask_cmd
from docent.cli.backfill import backfill_cmd
from docent.cli.ingest import ingest_cmd
from docent.cli.init import init_cmd
from docent.cli.remove import remove_cmd
from docent.cli.status import status_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("docent")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"docent {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="docent",
    help=(
        "docent — knowledge bases for grounded chat agents.\n\n"
        "  docent ingest  Add a web page, text or file to a knowledge base.\n"
        "  docent ask     Answer a question from a knowledge base."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """docent — knowledge bases for grounded chat agents."""


app.command("init")(init_cmd)
app.command("ingest")(ingest_cmd)
app.command("ask")(ask_cmd)
app.command("backfill")(backfill_cmd)
app.command("status")(status_cmd)
app.command("remove")(remove_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed docent version."""
    typer.echo(f"docent {_installed_version()}")


if __name__ == "__main__":
    app()
