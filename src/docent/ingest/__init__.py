"""docent ingest pipeline: extractors, normalizer, chunker, embedding writer."""

from docent.ingest.base import BaseExtractor, SourceRequest
from docent.ingest.chunker import SentenceChunker, chunk_text
from docent.ingest.embedding_writer import EmbeddingWriter, RetryPolicy
from docent.ingest.files import FileExtractor
from docent.ingest.normalizer import normalize
from docent.ingest.pipeline import IngestionPipeline
from docent.ingest.plaintext import RawTextExtractor
from docent.ingest.web import WebExtractor

__all__ = [
    "BaseExtractor",
    "SourceRequest",
    "SentenceChunker",
    "chunk_text",
    "EmbeddingWriter",
    "RetryPolicy",
    "FileExtractor",
    "normalize",
    "IngestionPipeline",
    "RawTextExtractor",
    "WebExtractor",
]
