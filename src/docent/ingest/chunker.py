"""Sentence-respecting chunker.

Text is cut into sentence-like segments at ``.``, ``!`` and ``?`` and the
segments are packed greedily into chunks of at most ``max_size`` characters,
joined by ``". "``. The terminal punctuation of each segment is dropped.

A single segment longer than ``max_size`` becomes its own chunk and is not
split further.
"""

from __future__ import annotations

import re

from docent.log import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_SIZE = 1000
SEGMENT_JOINER = ". "

_SENTENCE_END_RE = re.compile(r"[.!?]+")


def split_sentences(text: str) -> list[str]:
    """Split *text* at sentence punctuation; segments are stripped, empties dropped."""
    return [s.strip() for s in _SENTENCE_END_RE.split(text) if s.strip()]


class SentenceChunker:
    """Greedy sentence packer. Stateless: one instance may be shared freely."""

    def __init__(self, max_size: int = DEFAULT_MAX_SIZE) -> None:
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.max_size = max_size

    def chunk(self, text: str) -> list[str]:
        """Split *text* into an ordered list of non-empty chunks."""
        chunks: list[str] = []
        buffer = ""

        for segment in split_sentences(text):
            if not buffer:
                buffer = segment
                continue
            candidate = f"{buffer}{SEGMENT_JOINER}{segment}"
            if len(candidate) <= self.max_size:
                buffer = candidate
            else:
                chunks.append(buffer)
                buffer = segment

        if buffer:
            chunks.append(buffer)

        oversized = sum(1 for c in chunks if len(c) > self.max_size)
        if oversized:
            logger.debug("oversized_sentences", count=oversized, max_size=self.max_size)
        return chunks


def chunk_text(text: str, max_size: int = DEFAULT_MAX_SIZE) -> list[str]:
    """Convenience wrapper: ``SentenceChunker(max_size).chunk(text)``."""
    return SentenceChunker(max_size).chunk(text)
