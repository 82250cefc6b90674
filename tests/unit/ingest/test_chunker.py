"""Tests for the sentence chunker."""

from __future__ import annotations

import pytest

from docent.ingest.chunker import SentenceChunker, chunk_text, split_sentences


# ------------------------------------------------------------------
# split_sentences
# ------------------------------------------------------------------


def test_split_sentences_drops_punctuation_and_empties():
    assert split_sentences("One. Two!  Three?? ...") == ["One", "Two", "Three"]


def test_split_sentences_empty():
    assert split_sentences("") == []
    assert split_sentences(" . ! ? ") == []


# ------------------------------------------------------------------
# Chunk packing
# ------------------------------------------------------------------


def test_short_text_is_one_chunk():
    assert chunk_text("A. B. C.") == ["A. B. C"]


def test_empty_text_yields_no_chunks():
    assert chunk_text("") == []


def test_sentences_pack_up_to_max_size():
    sentence = "x" * 400
    text = ". ".join([sentence] * 3) + "."

    chunks = chunk_text(text, max_size=1000)

    assert chunks == [f"{sentence}. {sentence}", sentence]
    assert all(len(c) <= 1000 for c in chunks)


def test_each_sentence_alone_when_pairs_do_not_fit():
    sentence = "y" * 600
    text = ". ".join([sentence] * 3) + "."

    chunks = chunk_text(text, max_size=1000)

    assert chunks == [sentence, sentence, sentence]


def test_oversized_sentence_becomes_its_own_chunk():
    long_sentence = "z" * 50
    chunks = chunk_text(f"Short one. {long_sentence}. Short two.", max_size=20)

    assert chunks == ["Short one", long_sentence, "Short two"]


def test_order_and_content_preserved():
    text = "Alpha one. Bravo two. Charlie three. Delta four."
    chunks = SentenceChunker(max_size=25).chunk(text)

    assert chunks == ["Alpha one. Bravo two", "Charlie three. Delta four"]
    assert all(c.strip() for c in chunks)


def test_exact_fit_is_kept_together():
    # "aaaa. bbbb" is exactly 10 characters
    assert chunk_text("aaaa. bbbb.", max_size=10) == ["aaaa. bbbb"]
    assert chunk_text("aaaa. bbbb.", max_size=9) == ["aaaa", "bbbb"]


@pytest.mark.parametrize("bad", [0, -5])
def test_invalid_max_size(bad):
    with pytest.raises(ValueError, match="max_size"):
        SentenceChunker(max_size=bad)


def test_default_max_size():
    assert SentenceChunker().max_size == 1000
