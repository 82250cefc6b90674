"""Base extractor interface and the ingestion request shape."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from docent.db.models import SourceType


@dataclass
class SourceRequest:
    """One document to ingest into a knowledge base.

    Exactly one payload field is used, depending on ``type``:
    ``url`` for remote pages, ``text`` for pasted text, ``path`` for uploads.
    """

    knowledge_base_id: str
    type: SourceType
    name: str
    url: str | None = None
    text: str | None = None
    path: str | None = None

    @property
    def label(self) -> str:
        """Human-readable origin used in chunk metadata and log lines."""
        return self.name or self.url or self.path or "untitled"


class BaseExtractor(ABC):
    """Pull raw text out of one kind of source.

    Implementations raise ``docent.errors.ExtractionError`` when no usable
    text can be produced; any text they return is normalized and length-checked
    by the pipeline afterwards.
    """

    source_type: SourceType

    @abstractmethod
    def extract(self, request: SourceRequest) -> str:
        """Return the raw text of *request*."""
