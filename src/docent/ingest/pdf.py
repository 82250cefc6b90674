"""PDF text extraction via pypdf."""

from __future__ import annotations

from pathlib import Path

import pypdf
from pypdf.errors import PyPdfError

from docent.errors import ExtractionError


def extract_pdf_text(path: Path) -> str:
    """Extract all page text from the PDF at *path*.

    Pages that yield no text (scanned images, etc.) are skipped.

    Raises:
        ExtractionError: If the file is not a readable PDF or holds no text.
    """
    try:
        reader = pypdf.PdfReader(path)
        parts: list[str] = []
        for page in reader.pages:
            stripped = (page.extract_text() or "").strip()
            if stripped:
                parts.append(stripped)
    except (PyPdfError, OSError, ValueError) as exc:
        raise ExtractionError(f"Failed to extract text from PDF: {exc}") from exc

    if not parts:
        raise ExtractionError("No text content found in PDF.")
    return "\n\n".join(parts)
