"""Ingestion pipeline: extract → normalize → chunk → embed → store → finalize.

One ``ingest()`` call handles one source:

1. A Source row is created with status ``processing``.
2. The matching extractor pulls raw text; the text is normalized. Extraction
   errors and text shorter than ``min_content_length`` finalize the source as
   ``failed`` with zero chunks.
3. The text is chunked and every chunk is embedded and stored by the
   ``EmbeddingWriter``; a failed chunk is counted and the loop continues.
4. The source is finalized exactly once:

     failed == 0 and succeeded > 0   → completed
     failed > 0 and succeeded > 0    → completed-with-errors
     succeeded == 0                  → failed

An unexpected exception inside steps 2-3 finalizes the source as ``failed``
before it propagates, so no source is left in ``processing``.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping

from docent.config import IngestCfg
from docent.db.models import Source, SourceResult, SourceStatus, SourceType
from docent.db.repository import Repository
from docent.db.vectors import encode_vector
from docent.errors import ExtractionError, ServiceError
from docent.ingest.base import BaseExtractor, SourceRequest
from docent.ingest.chunker import SentenceChunker
from docent.ingest.embedding_writer import Embedder, EmbeddingWriter, ProgressCallback, RetryPolicy
from docent.ingest.files import FileExtractor
from docent.ingest.normalizer import normalize
from docent.ingest.plaintext import RawTextExtractor
from docent.ingest.web import WebExtractor
from docent.log import get_logger
from docent.rag.index import VectorIndex

logger = get_logger(__name__)


def default_extractors() -> dict[SourceType, BaseExtractor]:
    return {
        SourceType.REMOTE_PAGE: WebExtractor(),
        SourceType.RAW_TEXT: RawTextExtractor(),
        SourceType.UPLOADED_FILE: FileExtractor(),
    }


def final_status(succeeded: int, failed: int) -> SourceStatus:
    """Terminal status for a run that produced ``succeeded + failed`` chunks."""
    if succeeded == 0:
        return SourceStatus.FAILED
    if failed == 0:
        return SourceStatus.COMPLETED
    return SourceStatus.COMPLETED_WITH_ERRORS


def failure_message(failed: int) -> str | None:
    if failed == 0:
        return None
    return f"{failed} chunk{'s' if failed != 1 else ''} failed to process"


class IngestionPipeline:
    """Turn source requests into embedded chunks of a knowledge base.

    Args:
        repo: Open Repository instance.
        embedder: Anything with ``embed(text) -> list[float]``.
        index: Vector index kept in step with stored vectors.
        config: Chunk size, minimum length, retry and concurrency settings.
        extractors: Extractor per source type (defaults cover all three).
    """

    def __init__(
        self,
        repo: Repository,
        embedder: Embedder,
        index: VectorIndex,
        config: IngestCfg | None = None,
        extractors: Mapping[SourceType, BaseExtractor] | None = None,
    ) -> None:
        self._repo = repo
        self._index = index
        self._config = config or IngestCfg()
        self._extractors = dict(extractors) if extractors is not None else default_extractors()
        self._chunker = SentenceChunker(self._config.max_chunk_size)
        self._writer = EmbeddingWriter(
            repo,
            embedder,
            index,
            retry=RetryPolicy(
                attempts=self._config.retry_attempts,
                base_delay=self._config.retry_base_delay,
                max_delay=self._config.retry_max_delay,
            ),
            concurrency=self._config.concurrency,
        )

    @property
    def writer(self) -> EmbeddingWriter:
        return self._writer

    def ingest(
        self, request: SourceRequest, on_progress: ProgressCallback | None = None
    ) -> SourceResult:
        """Ingest one source and return its chunk accounting and final status."""
        source = Source(
            id=str(uuid.uuid4()),
            knowledge_base_id=request.knowledge_base_id,
            type=request.type,
            name=request.label,
            url=request.url,
            status=SourceStatus.PROCESSING,
        )
        self._repo.add_source(source)
        log = logger.bind(source_id=source.id, kb=source.knowledge_base_id, type=source.type.value)
        log.info("source_started", name=source.name)

        try:
            result = self._run(source, request, on_progress)
        except Exception as exc:
            message = f"Processing failed: {exc}"
            self._repo.finalize_source(source.id, SourceStatus.FAILED, message)
            log.error("source_aborted", error=str(exc))
            raise

        log.info(
            "source_finalized",
            status=result.status.value,
            succeeded=result.succeeded,
            failed=result.failed,
        )
        return result

    def _run(
        self,
        source: Source,
        request: SourceRequest,
        on_progress: ProgressCallback | None,
    ) -> SourceResult:
        extractor = self._extractors.get(request.type)
        if extractor is None:
            return self._fail(source, f"No extractor registered for source type '{request.type.value}'.")

        try:
            raw = extractor.extract(request)
        except ExtractionError as exc:
            return self._fail(source, str(exc))

        text = normalize(raw)
        if len(text) < self._config.min_content_length:
            return self._fail(
                source,
                f"Insufficient content: {len(text)} characters after cleanup "
                f"(minimum {self._config.min_content_length}).",
                content=text,
            )

        chunks = self._chunker.chunk(text)
        succeeded, failed = self._writer.write(source, chunks, request.label, on_progress)

        status = final_status(succeeded, failed)
        message = failure_message(failed)
        if not chunks:
            message = "No chunks were produced from the source text."
        self._repo.finalize_source(source.id, status, message, content=text)
        return SourceResult(
            source_id=source.id,
            succeeded=succeeded,
            failed=failed,
            status=status,
            error_message=message,
        )

    def _fail(self, source: Source, message: str, content: str | None = None) -> SourceResult:
        self._repo.finalize_source(source.id, SourceStatus.FAILED, message, content=content)
        return SourceResult(
            source_id=source.id,
            succeeded=0,
            failed=0,
            status=SourceStatus.FAILED,
            error_message=message,
        )

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def backfill(
        self,
        knowledge_base_id: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> dict[str, int]:
        """Embed chunks that have no vector (NULL, empty or ``[]``).

        Source status is left untouched. Returns ``{processed, failed, total}``.
        """
        pending = self._repo.list_unembedded_chunks(knowledge_base_id)
        total = len(pending)
        processed = failed = 0

        for i, chunk in enumerate(pending, start=1):
            try:
                vector = self._writer.embed(chunk.content)
            except ServiceError as exc:
                ok = False
                failed += 1
                logger.warning("backfill_chunk_failed", chunk_id=chunk.id, error=str(exc))
            else:
                ok = True
                chunk.embedding = encode_vector(vector)
                self._repo.set_chunk_embedding(chunk.id, chunk.embedding)
                self._index.add(chunk, vector)
                processed += 1
            if on_progress is not None:
                on_progress(i, total, ok)

        logger.info("backfill_finished", processed=processed, failed=failed, total=total)
        return {"processed": processed, "failed": failed, "total": total}

    def remove_source(self, source_id: str) -> bool:
        return remove_source(self._repo, self._index, source_id)


def remove_source(repo: Repository, index: VectorIndex, source_id: str) -> bool:
    """Delete a source, its chunks and their index entries. Returns False if unknown."""
    if repo.get_source(source_id) is None:
        return False
    index.remove_source(source_id)
    repo.delete_source(source_id)
    logger.info("source_removed", source_id=source_id)
    return True
