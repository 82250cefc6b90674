"""Tests for text normalization."""

from __future__ import annotations

import pytest

from docent.ingest.normalizer import normalize


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("", ""),
        ("   \n\t  ", ""),
        ("hello", "hello"),
        ("  padded  ", "padded"),
        ("many    spaces\tand\t\ttabs", "many spaces and tabs"),
        ("line one\r\nline two\rline three", "line one\nline two\nline three"),
        ("para one\n\n\n\npara two", "para one\npara two"),
        ("trailing   \n   leading", "trailing\nleading"),
    ],
)
def test_normalize(raw, expected):
    assert normalize(raw) == expected


def test_control_characters_become_spaces():
    assert normalize("bell\x07here\x00too") == "bell here too"


def test_idempotent():
    raw = "  A  messy\r\n\r\n text\x0b with  \t gaps  "
    once = normalize(raw)
    assert normalize(once) == once


def test_unicode_text_preserved():
    assert normalize("café  naïve") == "café naïve"
