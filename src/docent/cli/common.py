"""Helpers shared by the docent commands: config + logging setup, DB, components."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import typer
from rich.console import Console

from docent.cli.errors import err_config, err_no_api_key
from docent.config import ConfigError, DocentConfig, load_config
from docent.db.connection import Database
from docent.db.repository import Repository
from docent.errors import ServiceError
from docent.ingest.pipeline import IngestionPipeline
from docent.log import configure_logging
from docent.rag.index import VectorIndex, build_index
from docent.rag.llm_client import EmbeddingClient, validate_api_key
from docent.rag.retriever import Retriever, RetrieverConfig

console = Console()

DEFAULT_DB = Path(".docent.db")


def setup(verbose: bool = False) -> DocentConfig:
    """Load config and configure logging for one command invocation."""
    try:
        cfg = load_config()
    except ConfigError as exc:
        configure_logging()
        console.print(err_config(str(exc)))
        raise typer.Exit(1) from exc
    level = "INFO" if verbose else cfg.logging.level
    configure_logging(level=level, json_output=cfg.logging.json)
    return cfg


def open_db(db_path: Path) -> sqlite3.Connection:
    return Database(db_path).connect(migrate=True)


def require_api_key(model: str) -> None:
    """Exit with an actionable message when *model*'s provider key is missing."""
    try:
        validate_api_key(model)
    except ServiceError as exc:
        provider = model.split("/")[0] if "/" in model else "openai"
        console.print(err_no_api_key(provider))
        raise typer.Exit(1) from exc


def make_index(cfg: DocentConfig, repo: Repository) -> VectorIndex:
    return build_index(cfg.retrieval.index, repo, cfg.embedding.model)


def make_pipeline(cfg: DocentConfig, repo: Repository) -> IngestionPipeline:
    embedder = EmbeddingClient(cfg.embedding.model)
    return IngestionPipeline(repo, embedder, make_index(cfg, repo), cfg.ingest)


def make_retriever(cfg: DocentConfig, repo: Repository) -> Retriever:
    return Retriever(
        EmbeddingClient(cfg.embedding.model),
        make_index(cfg, repo),
        RetrieverConfig(
            limit=cfg.retrieval.limit,
            min_similarity=cfg.retrieval.min_similarity,
            fallback_thresholds=list(cfg.retrieval.fallback_thresholds),
        ),
    )
