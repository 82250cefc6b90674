"""Embedding writer: embed chunk texts and persist them as chunk rows.

For each chunk text, in order:
1. Embed it through the ``RetryPolicy`` (capped attempts, exponential backoff).
2. Store the chunk with its JSON vector and ``ChunkMetadata`` via
   ``Repository.add_chunk()``; a chunk whose embedding failed is stored with a
   NULL vector so ``backfill`` can repair it later.
3. Hand successful vectors to the ``VectorIndex``.

A failed embedding never aborts the batch. With ``concurrency > 1`` the
embedding calls run on a bounded thread pool, but rows are still written from
the calling thread in chunk order.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Protocol, TypeVar

from docent.db.models import Chunk, ChunkMetadata, Source
from docent.db.repository import Repository
from docent.db.vectors import encode_vector
from docent.errors import ServiceError
from docent.log import get_logger
from docent.rag.index import VectorIndex

logger = get_logger(__name__)

T = TypeVar("T")

ProgressCallback = Callable[[int, int, bool], None]
"""Called as ``(attempted, total, succeeded)`` after each chunk."""


class Embedder(Protocol):
    def embed(self, text: str) -> list[float]: ...


@dataclass
class RetryPolicy:
    """Retry a call on ``ServiceError`` with capped exponential backoff.

    Attributes:
        attempts: Total attempts, including the first (1 = no retry).
        base_delay: Delay before the second attempt, in seconds.
        max_delay: Upper bound for any single delay.
        sleep: Sleep function (swapped out in tests).
    """

    attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError(f"attempts must be >= 1, got {self.attempts}")

    def delay(self, attempt: int) -> float:
        """Backoff after failed *attempt* (1-based): ``base_delay * 2**(attempt-1)``, capped."""
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)

    def call(self, fn: Callable[..., T], *args: object) -> T:
        for attempt in range(1, self.attempts + 1):
            try:
                return fn(*args)
            except ServiceError as exc:
                if attempt == self.attempts:
                    raise
                wait = self.delay(attempt)
                logger.info("retrying", attempt=attempt, wait=wait, error=str(exc))
                self.sleep(wait)
        raise AssertionError("unreachable")


class EmbeddingWriter:
    """Embed and persist the chunks of one source.

    Args:
        repo: Open Repository instance.
        embedder: Anything with ``embed(text) -> list[float]``.
        index: Vector index that receives every successful vector.
        retry: Retry policy for each embedding call.
        concurrency: Embedding worker threads (1 = strictly sequential).
    """

    def __init__(
        self,
        repo: Repository,
        embedder: Embedder,
        index: VectorIndex,
        retry: RetryPolicy | None = None,
        concurrency: int = 1,
    ) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self._repo = repo
        self._embedder = embedder
        self._index = index
        self._retry = retry or RetryPolicy()
        self._concurrency = concurrency

    def embed(self, text: str) -> list[float]:
        """Embed *text* under the retry policy. Raises ServiceError once attempts run out."""
        return self._retry.call(self._embedder.embed, text)

    def write(
        self,
        source: Source,
        texts: list[str],
        label: str,
        on_progress: ProgressCallback | None = None,
    ) -> tuple[int, int]:
        """Embed and store *texts* as the chunks of *source*.

        Returns:
            ``(succeeded, failed)``; their sum is always ``len(texts)``.
        """
        total = len(texts)
        succeeded = failed = 0

        for i, outcome in enumerate(self._embed_all(texts)):
            vector = None if isinstance(outcome, ServiceError) else [float(v) for v in outcome]
            metadata = ChunkMetadata(
                source=label,
                type=source.type.value,
                chunk_index=i,
                total_chunks=total,
            )
            chunk = Chunk(
                id=str(uuid.uuid4()),
                source_id=source.id,
                chunk_index=i,
                content=texts[i],
                embedding=encode_vector(vector) if vector is not None else None,
                metadata=metadata.to_json(),
            )
            self._repo.add_chunk(chunk)

            if vector is not None:
                self._index.add(chunk, vector)
                succeeded += 1
            else:
                failed += 1
                logger.warning(
                    "chunk_embed_failed",
                    source_id=source.id,
                    chunk_index=i,
                    error=str(outcome),
                )

            if on_progress is not None:
                on_progress(i + 1, total, vector is not None)

        return succeeded, failed

    # ------------------------------------------------------------------
    # Embedding fan-out
    # ------------------------------------------------------------------

    def _embed_one(self, text: str) -> list[float] | ServiceError:
        try:
            return self.embed(text)
        except ServiceError as exc:
            return exc

    def _embed_all(self, texts: list[str]):
        """Yield a vector or the ServiceError for each text, in input order."""
        if self._concurrency == 1 or len(texts) <= 1:
            for text in texts:
                yield self._embed_one(text)
            return

        pool = ThreadPoolExecutor(max_workers=self._concurrency, thread_name_prefix="docent-embed")
        try:
            futures: list[Future] = [pool.submit(self._embed_one, text) for text in texts]
            for future in futures:
                yield future.result()
        finally:
            pool.shutdown(wait=True, cancel_futures=True)
