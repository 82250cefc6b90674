"""Whitespace and control-character normalization applied before chunking."""

from __future__ import annotations

import re
import unicodedata

_HORIZONTAL_WS_RE = re.compile(r"[^\S\n]+")
_NEWLINE_RUN_RE = re.compile(r" ?\n\s*")


def normalize(raw: str) -> str:
    """Return *raw* with whitespace collapsed and control characters removed.

    - ``\\r\\n`` and ``\\r`` become ``\\n``
    - control characters other than newline and tab become spaces
    - runs of spaces/tabs collapse to one space
    - runs of newlines (with any surrounding whitespace) collapse to one newline
    - leading and trailing whitespace is trimmed

    Never raises; an all-whitespace input returns ``""``.
    """
    if not raw:
        return ""
    text = raw.replace("\r\n", "\n").replace("\r", "\n")
    text = "".join(
        " " if ch not in "\n\t" and unicodedata.category(ch) == "Cc" else ch
        for ch in text
    )
    text = _HORIZONTAL_WS_RE.sub(" ", text)
    text = _NEWLINE_RUN_RE.sub("\n", text)
    return text.strip()
