"""Plain text extraction — pasted text and text files."""

from __future__ import annotations

from pathlib import Path

from docent.db.models import SourceType
from docent.errors import ExtractionError
from docent.ingest.base import BaseExtractor, SourceRequest


class RawTextExtractor(BaseExtractor):
    """Pasted text is used as-is."""

    source_type = SourceType.RAW_TEXT

    def extract(self, request: SourceRequest) -> str:
        if not request.text or not request.text.strip():
            raise ExtractionError("Content is required for text sources.")
        return request.text


def read_text_file(path: Path) -> str:
    """Decode a text file as UTF-8, replacing undecodable bytes."""
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise ExtractionError(f"Could not read '{path}': {exc}") from exc
