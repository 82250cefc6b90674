"""Uploaded file extraction — dispatch by extension.

  .pdf                                     → pypdf page text
  .txt .text .md .markdown .csv .log       → UTF-8 text

Uploads larger than 10 MB are rejected before reading.
"""

from __future__ import annotations

from pathlib import Path

from docent.db.models import SourceType
from docent.errors import ExtractionError
from docent.ingest.base import BaseExtractor, SourceRequest
from docent.ingest.pdf import extract_pdf_text
from docent.ingest.plaintext import read_text_file

MAX_UPLOAD_BYTES = 10 * 1024 * 1024

PDF_EXTS = frozenset({".pdf"})
TEXT_EXTS = frozenset({".txt", ".text", ".md", ".markdown", ".csv", ".log"})
SUPPORTED_EXTS = PDF_EXTS | TEXT_EXTS


class FileExtractor(BaseExtractor):
    """Extract text from a local PDF or text file."""

    source_type = SourceType.UPLOADED_FILE

    def __init__(self, max_bytes: int = MAX_UPLOAD_BYTES) -> None:
        self.max_bytes = max_bytes

    def extract(self, request: SourceRequest) -> str:
        if not request.path:
            raise ExtractionError("A file path is required for uploaded-file sources.")
        path = Path(request.path)
        if not path.is_file():
            raise ExtractionError(f"File not found: '{path}'")

        ext = path.suffix.lower()
        if ext not in SUPPORTED_EXTS:
            raise ExtractionError(
                f"Unsupported file type {ext or '(none)'!r}. "
                f"Supported: {', '.join(sorted(SUPPORTED_EXTS))}"
            )

        size = path.stat().st_size
        if size > self.max_bytes:
            raise ExtractionError(
                f"File '{path.name}' is {size / (1024 * 1024):.1f} MB; "
                f"the limit is {self.max_bytes // (1024 * 1024)} MB."
            )

        if ext in PDF_EXTS:
            return extract_pdf_text(path)
        return read_text_file(path)
