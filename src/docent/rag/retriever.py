"""Similarity retriever with a cascading minimum-similarity threshold.

  1. Embed the query (a failure here is fatal for the request).
  2. Ask the vector index for the top ``limit`` candidates, best first.
  3. Keep candidates with similarity >= ``min_similarity``.
  4. If none qualify, retry with each fallback threshold below ``min_similarity``
     in order, then with no threshold at all.

Because the candidate list is sorted descending, filtering the top ``limit``
is the same as filtering everything and then taking ``limit``. The result is
empty only when the knowledge base has no embedded chunks.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol

from docent.log import get_logger
from docent.rag.index import ScoredChunk, VectorIndex

logger = get_logger(__name__)


class Embedder(Protocol):
    def embed(self, text: str) -> list[float]: ...


@dataclass
class RetrieverConfig:
    """Configuration for the retriever.

    Attributes:
        limit: Maximum number of chunks to return.
        min_similarity: First (strictest) cosine similarity cutoff.
        fallback_thresholds: Cutoffs tried in order when nothing passes
            ``min_similarity``; values not below it are skipped.
    """

    limit: int = 3
    min_similarity: float = 0.5
    fallback_thresholds: list[float] = field(default_factory=lambda: [0.3, 0.0])


def threshold_cascade(min_similarity: float, fallbacks: Sequence[float]) -> list[float]:
    """Return the strictly decreasing list of cutoffs to try, starting at *min_similarity*."""
    cascade = [min_similarity]
    for value in fallbacks:
        if value < cascade[-1]:
            cascade.append(value)
    return cascade


class Retriever:
    """Rank a knowledge base's chunks against a query."""

    def __init__(
        self,
        embedder: Embedder,
        index: VectorIndex,
        config: RetrieverConfig | None = None,
    ) -> None:
        self._embedder = embedder
        self._index = index
        self._config = config or RetrieverConfig()

    def retrieve(
        self,
        query: str,
        knowledge_base_id: str,
        limit: int | None = None,
        min_similarity: float | None = None,
    ) -> list[str]:
        """Return up to *limit* chunk texts, most similar first."""
        return [
            sc.chunk.content
            for sc in self.retrieve_scored(query, knowledge_base_id, limit, min_similarity)
        ]

    def retrieve_scored(
        self,
        query: str,
        knowledge_base_id: str,
        limit: int | None = None,
        min_similarity: float | None = None,
    ) -> list[ScoredChunk]:
        """Like retrieve() but keeps the chunks and their similarity scores.

        Raises:
            ServiceError: If the query cannot be embedded.
        """
        limit = self._config.limit if limit is None else limit
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")
        min_similarity = (
            self._config.min_similarity if min_similarity is None else min_similarity
        )

        if self._index.size(knowledge_base_id) == 0:
            logger.info("retrieval_empty_kb", kb=knowledge_base_id)
            return []

        query_vector = self._embedder.embed(query)
        candidates = self._index.search(knowledge_base_id, query_vector, limit)

        for threshold in threshold_cascade(min_similarity, self._config.fallback_thresholds):
            selected = [sc for sc in candidates if sc.similarity >= threshold]
            if selected:
                if threshold != min_similarity:
                    logger.info(
                        "retrieval_cascade",
                        kb=knowledge_base_id,
                        threshold=threshold,
                        results=len(selected),
                    )
                return selected

        # Nothing passed even the loosest cutoff (negative similarities).
        logger.info("retrieval_unfiltered", kb=knowledge_base_id, results=len(candidates))
        return candidates
