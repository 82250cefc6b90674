"""Shared pytest fixtures."""

from __future__ import annotations

import os

# Use litellm's bundled model cost map instead of fetching it at import time;
# the failed network fetch deadlocks litellm's import under pytest offline.
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")

import pytest

from docent.db.connection import Database
from docent.db.models import Chunk, Source, SourceStatus, SourceType
from docent.db.repository import Repository
from docent.db.schema import initialize
from docent.db.vectors import encode_vector
from docent.errors import ServiceError


class FakeEmbedder:
    """Deterministic stand-in for the embedding service.

    Texts found in *vectors* get that vector, everything else gets *default*.
    Texts in *fail_on* raise ServiceError on every call.
    """

    def __init__(self, vectors=None, default=(1.0, 0.0, 0.0), fail_on=()):
        self.vectors = dict(vectors or {})
        self.default = list(default)
        self.fail_on = set(fail_on)
        self.calls: list[str] = []

    def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if text in self.fail_on:
            raise ServiceError(f"embedding failed for {text[:20]!r}", model="fake/embed")
        return list(self.vectors.get(text, self.default))


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(tmp_path / ".docent.db")
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def repo(tmp_db):
    return Repository(tmp_db)


@pytest.fixture
def fake_embedder():
    """Factory: ``fake_embedder(vectors=..., default=..., fail_on=...)``."""
    return FakeEmbedder


@pytest.fixture
def seed(repo):
    """Factory: ``seed(kb, [(text, vector | None), ...])`` stores one source with those chunks."""
    counter = iter(range(1, 10_000))

    def _seed(knowledge_base_id, items, status=SourceStatus.COMPLETED):
        n = next(counter)
        source = Source(
            id=f"src-{knowledge_base_id}-{n}",
            knowledge_base_id=knowledge_base_id,
            type=SourceType.RAW_TEXT,
            name=f"seed {n}",
            status=status,
        )
        repo.add_source(source)
        chunks = []
        for i, (text, vector) in enumerate(items):
            chunk = Chunk(
                id=f"{source.id}-c{i}",
                source_id=source.id,
                chunk_index=i,
                content=text,
                embedding=encode_vector(vector) if vector is not None else None,
            )
            repo.add_chunk(chunk)
            chunks.append(chunk)
        return chunks

    return _seed
