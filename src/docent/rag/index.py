"""Vector index: cosine similarity ranking over a knowledge base's chunks.

Two interchangeable implementations sit behind ``VectorIndex``:

  LinearScanIndex   reads every embedded chunk and scores it with numpy (default)
  SqliteVecIndex    mirrors vectors into a vec0 table and answers KNN queries

``chunks.embedding`` stays the source of truth in both cases; the sqlite-vec
table is a derived copy that is re-synced lazily from it.
"""

from __future__ import annotations

import sqlite3
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import numpy as np

from docent.db.models import Chunk
from docent.db.repository import Repository
from docent.db.vectors import (
    decode_vector,
    ensure_vec_table,
    model_to_slug,
    vec_table_dimensions,
    vec_table_name,
)
from docent.log import get_logger

logger = get_logger(__name__)

INDEX_LINEAR = "linear"
INDEX_SQLITE_VEC = "sqlite-vec"


@dataclass
class ScoredChunk:
    """A candidate chunk with its cosine similarity to the query (in [-1, 1])."""

    chunk: Chunk
    similarity: float


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return dot(a, b) / (|a| * |b|).

    Vectors of different length, or with a zero norm, score 0.0.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape or va.size == 0:
        return 0.0
    norm = np.linalg.norm(va) * np.linalg.norm(vb)
    if norm == 0.0:
        return 0.0
    return float(np.clip(np.dot(va, vb) / norm, -1.0, 1.0))


def rank_chunks(query_vector: Sequence[float], chunks: Iterable[Chunk]) -> list[ScoredChunk]:
    """Score every chunk against *query_vector*, best first.

    A chunk whose stored vector cannot be decoded scores 0.0 and stays in the
    ranking. Ties keep input order (``list.sort`` is stable).
    """
    scored: list[ScoredChunk] = []
    for chunk in chunks:
        try:
            vector = decode_vector(chunk.embedding)
        except ValueError:
            logger.debug("vector_decode_failed", chunk_id=chunk.id)
            similarity = 0.0
        else:
            similarity = cosine_similarity(query_vector, vector)
        scored.append(ScoredChunk(chunk=chunk, similarity=similarity))

    scored.sort(key=lambda s: s.similarity, reverse=True)
    return scored


class VectorIndex(ABC):
    """Similarity search scoped to one knowledge base."""

    @abstractmethod
    def add(self, chunk: Chunk, vector: Sequence[float]) -> None:
        """Make a persisted chunk's vector searchable."""

    @abstractmethod
    def remove_source(self, source_id: str) -> None:
        """Drop index entries of every chunk of *source_id* (before the rows are deleted)."""

    @abstractmethod
    def size(self, knowledge_base_id: str) -> int:
        """Number of candidate chunks in *knowledge_base_id*."""

    @abstractmethod
    def search(
        self, knowledge_base_id: str, query_vector: Sequence[float], limit: int | None = None
    ) -> list[ScoredChunk]:
        """Return up to *limit* chunks (all when None), best first."""


class LinearScanIndex(VectorIndex):
    """O(n) scan over the stored vectors; nothing is kept beyond the chunk rows."""

    def __init__(self, repo: Repository) -> None:
        self._repo = repo

    def add(self, chunk: Chunk, vector: Sequence[float]) -> None:
        return None

    def remove_source(self, source_id: str) -> None:
        return None

    def size(self, knowledge_base_id: str) -> int:
        return self._repo.count_embedded_chunks(knowledge_base_id)

    def search(
        self, knowledge_base_id: str, query_vector: Sequence[float], limit: int | None = None
    ) -> list[ScoredChunk]:
        ranked = rank_chunks(query_vector, self._repo.list_embedded_chunks(knowledge_base_id))
        return ranked if limit is None else ranked[:limit]


class SqliteVecIndex(VectorIndex):
    """KNN search through a per-model sqlite-vec table (cosine distance).

    The table is created on first use with the dimension of the first vector
    seen. Chunks embedded before the table existed (or while another index was
    configured) are mirrored on the first search of each knowledge base.
    """

    def __init__(self, repo: Repository, model: str) -> None:
        self._repo = repo
        self._model = model
        self._slug = model_to_slug(model)
        self._table = vec_table_name(self._slug)
        self._synced: set[str] = set()

    @property
    def table(self) -> str:
        return self._table

    def add(self, chunk: Chunk, vector: Sequence[float]) -> None:
        if chunk.rowid is None:
            raise ValueError(f"chunk {chunk.id} must be persisted before it is indexed")
        knowledge_base_id = self._repo.knowledge_base_of_chunk(chunk)
        if knowledge_base_id is None:
            raise ValueError(f"chunk {chunk.id} has no owning source")
        ensure_vec_table(self._repo.conn, self._slug, len(vector))
        dimensions = vec_table_dimensions(self._repo.conn, self._table)
        if dimensions != len(vector):
            # left out of the table; search scores it 0.0
            logger.warning(
                "vec_dimension_mismatch",
                table=self._table,
                chunk_id=chunk.id,
                expected=dimensions,
                received=len(vector),
            )
            return
        self._repo.add_vec_embedding(self._table, chunk.rowid, knowledge_base_id, vector)

    def remove_source(self, source_id: str) -> None:
        self._repo.delete_vec_by_source(source_id)

    def size(self, knowledge_base_id: str) -> int:
        return self._repo.count_embedded_chunks(knowledge_base_id)

    def search(
        self, knowledge_base_id: str, query_vector: Sequence[float], limit: int | None = None
    ) -> list[ScoredChunk]:
        """KNN hits first, then every candidate without a vec row at similarity 0.0.

        A query whose dimension differs from the table scores all candidates 0.0,
        the same as a length mismatch in ``cosine_similarity``.
        """
        candidates = self._repo.list_embedded_chunks(knowledge_base_id)
        if not candidates:
            return []
        conn = self._repo.conn
        ensure_vec_table(conn, self._slug, len(query_vector))
        dimensions = vec_table_dimensions(conn, self._table)
        if dimensions != len(query_vector):
            logger.warning(
                "vec_dimension_mismatch",
                table=self._table,
                expected=dimensions,
                received=len(query_vector),
            )
            scored = [ScoredChunk(chunk=chunk, similarity=0.0) for chunk in candidates]
            return scored if limit is None else scored[:limit]

        if knowledge_base_id not in self._synced:
            self._sync(knowledge_base_id, dimensions, candidates)
            self._synced.add(knowledge_base_id)

        k = len(candidates) if limit is None else min(limit, len(candidates))
        hits = self._repo.search_vec(self._table, knowledge_base_id, query_vector, limit=k)
        scored = [ScoredChunk(chunk=chunk, similarity=1.0 - distance) for chunk, distance in hits]

        indexed = self._indexed_rowids()
        scored.extend(
            ScoredChunk(chunk=chunk, similarity=0.0)
            for chunk in candidates
            if chunk.rowid not in indexed
        )
        scored.sort(key=lambda s: s.similarity, reverse=True)
        return scored if limit is None else scored[:limit]

    def _indexed_rowids(self) -> set[int]:
        return {row[0] for row in self._repo.conn.execute(f"SELECT rowid FROM {self._table}")}

    def _sync(self, knowledge_base_id: str, dimensions: int, candidates: list[Chunk]) -> None:
        """Mirror embedded chunks that have no vec row yet.

        Undecodable vectors and vectors of another dimension are skipped.
        """
        present = self._indexed_rowids()
        mirrored = 0
        for chunk in candidates:
            if chunk.rowid in present:
                continue
            try:
                vector = decode_vector(chunk.embedding)
            except ValueError:
                continue
            if len(vector) != dimensions:
                continue
            try:
                self._repo.add_vec_embedding(self._table, chunk.rowid, knowledge_base_id, vector)
            except sqlite3.IntegrityError:
                continue
            mirrored += 1
        if mirrored:
            logger.info("vec_index_synced", table=self._table, kb=knowledge_base_id, rows=mirrored)


def build_index(kind: str, repo: Repository, model: str) -> VectorIndex:
    """Return the index implementation named by *kind* (``linear`` or ``sqlite-vec``)."""
    if kind == INDEX_LINEAR:
        return LinearScanIndex(repo)
    if kind == INDEX_SQLITE_VEC:
        return SqliteVecIndex(repo, model)
    raise ValueError(f"Unknown index kind '{kind}'. Use '{INDEX_LINEAR}' or '{INDEX_SQLITE_VEC}'.")
