"""CLI test fixtures: isolated working directory, config and API keys."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from docent.db.connection import Database
from docent.db.repository import Repository


@pytest.fixture(autouse=True)
def cli_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run every command in tmp_path with no global config and a dummy OpenAI key."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("docent.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    for var in ("DOCENT_EMBEDDING_MODEL", "DOCENT_GENERATION_MODEL", "DOCENT_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    return tmp_path


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / ".docent.db"


@pytest.fixture
def cli_repo(db_path: Path):
    """Repository on the same file the commands use (schema initialized)."""
    conn = Database(db_path).connect(migrate=True)
    yield Repository(conn)
    conn.close()


@pytest.fixture
def fake_embedding_client(fake_embedder):
    """Replace EmbeddingClient in the CLI wiring with a deterministic fake.

    Yields the fake so tests can tune ``vectors`` / ``fail_on`` before invoking.
    """
    fake = fake_embedder()
    with patch("docent.cli.common.EmbeddingClient", return_value=fake):
        yield fake
