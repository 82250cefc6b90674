"""Tests for the Repository pattern."""

from __future__ import annotations

import pytest

from docent.db.models import Chunk, ChunkMetadata, Role, Source, SourceStatus, SourceType
from docent.db.vectors import ensure_vec_table


def _source(id="src-1", kb="kb-1", type=SourceType.RAW_TEXT, name="notes"):
    return Source(id=id, knowledge_base_id=kb, type=type, name=name)


def _chunk(id="c-1", source_id="src-1", index=0, content="hello world", embedding="[1.0, 0.0]"):
    meta = ChunkMetadata(source="notes", type="raw-text", chunk_index=index, total_chunks=1)
    return Chunk(
        id=id,
        source_id=source_id,
        chunk_index=index,
        content=content,
        embedding=embedding,
        metadata=meta.to_json(),
    )


# ------------------------------------------------------------------
# Sources
# ------------------------------------------------------------------

def test_add_and_get_source(repo):
    repo.add_source(_source(type=SourceType.REMOTE_PAGE))
    result = repo.get_source("src-1")
    assert result is not None
    assert result.knowledge_base_id == "kb-1"
    assert result.type is SourceType.REMOTE_PAGE
    assert result.status is SourceStatus.PENDING


def test_get_source_not_found(repo):
    assert repo.get_source("nonexistent") is None


def test_list_sources_filters_by_kb(repo):
    repo.add_source(_source(id="s1", kb="kb-a"))
    repo.add_source(_source(id="s2", kb="kb-b"))
    assert {s.id for s in repo.list_sources()} == {"s1", "s2"}
    assert [s.id for s in repo.list_sources("kb-a")] == ["s1"]


def test_finalize_source_sets_status_message_and_content(repo):
    repo.add_source(_source())
    repo.finalize_source(
        "src-1", SourceStatus.COMPLETED_WITH_ERRORS, "1 chunk failed to process", content="Body"
    )
    result = repo.get_source("src-1")
    assert result.status is SourceStatus.COMPLETED_WITH_ERRORS
    assert result.error_message == "1 chunk failed to process"
    assert result.content == "Body"


def test_finalize_source_without_content_keeps_content(repo):
    s = _source()
    s.content = "original"
    repo.add_source(s)
    repo.finalize_source("src-1", SourceStatus.FAILED, "boom")
    assert repo.get_source("src-1").content == "original"


def test_delete_source_cascades_chunks(repo):
    repo.add_source(_source())
    repo.add_chunk(_chunk())
    repo.delete_source("src-1")
    assert repo.get_source("src-1") is None
    assert repo.get_chunk("c-1") is None


# ------------------------------------------------------------------
# Chunks
# ------------------------------------------------------------------

def test_add_chunk_returns_and_sets_rowid(repo):
    repo.add_source(_source())
    chunk = _chunk()
    rowid = repo.add_chunk(chunk)
    assert rowid == chunk.rowid
    assert repo.get_chunk_by_rowid(rowid).id == "c-1"


def test_chunk_metadata_roundtrip(repo):
    repo.add_source(_source())
    repo.add_chunk(_chunk(index=2))
    meta = repo.get_chunk("c-1").metadata_obj
    assert meta.chunk_index == 2
    assert meta.source == "notes"


def test_list_chunks_in_order(repo):
    repo.add_source(_source())
    repo.add_chunk(_chunk(id="c-b", index=1))
    repo.add_chunk(_chunk(id="c-a", index=0))
    assert [c.id for c in repo.list_chunks("src-1")] == ["c-a", "c-b"]


def test_embedded_vs_unembedded(repo):
    repo.add_source(_source())
    repo.add_chunk(_chunk(id="ok"))
    repo.add_chunk(_chunk(id="null", embedding=None))
    repo.add_chunk(_chunk(id="empty", embedding=""))
    repo.add_chunk(_chunk(id="brackets", embedding="[]"))
    repo.add_chunk(_chunk(id="garbage", embedding="not-json"))

    embedded = {c.id for c in repo.list_embedded_chunks("kb-1")}
    missing = {c.id for c in repo.list_unembedded_chunks()}

    # A malformed vector is still "present"; retrieval scores it 0.
    assert embedded == {"ok", "garbage"}
    assert missing == {"null", "empty", "brackets"}
    assert repo.count_embedded_chunks("kb-1") == 2
    assert repo.count_chunks_by_source("src-1") == 5
    assert repo.count_embedded_by_source("src-1") == 2


def test_list_unembedded_chunks_filters_by_kb(repo):
    repo.add_source(_source(id="s1", kb="kb-a"))
    repo.add_source(_source(id="s2", kb="kb-b"))
    repo.add_chunk(_chunk(id="a", source_id="s1", embedding=None))
    repo.add_chunk(_chunk(id="b", source_id="s2", embedding=None))
    assert [c.id for c in repo.list_unembedded_chunks("kb-b")] == ["b"]


def test_set_chunk_embedding(repo):
    repo.add_source(_source())
    repo.add_chunk(_chunk(embedding=None))
    repo.set_chunk_embedding("c-1", "[0.5, 0.5]")
    assert repo.get_chunk("c-1").has_embedding
    assert repo.list_unembedded_chunks() == []


def test_knowledge_base_of_chunk(repo):
    repo.add_source(_source(kb="kb-x"))
    chunk = _chunk()
    repo.add_chunk(chunk)
    assert repo.knowledge_base_of_chunk(chunk) == "kb-x"


# ------------------------------------------------------------------
# sqlite-vec rows
# ------------------------------------------------------------------

def test_search_vec_returns_nearest_first(repo):
    repo.add_source(_source())
    table = ensure_vec_table(repo.conn, "fake_model", 2)
    near, far = _chunk(id="near"), _chunk(id="far", index=1)
    repo.add_chunk(near)
    repo.add_chunk(far)
    repo.add_vec_embedding(table, near.rowid, "kb-1", [1.0, 0.0])
    repo.add_vec_embedding(table, far.rowid, "kb-1", [0.0, 1.0])

    hits = repo.search_vec(table, "kb-1", [1.0, 0.1], limit=2)
    assert [c.id for c, _ in hits] == ["near", "far"]
    assert hits[0][1] < hits[1][1]


def test_delete_vec_by_source(repo):
    repo.add_source(_source())
    table = ensure_vec_table(repo.conn, "fake_model", 2)
    chunk = _chunk()
    repo.add_chunk(chunk)
    repo.add_vec_embedding(table, chunk.rowid, "kb-1", [1.0, 0.0])

    assert repo.delete_vec_by_source("src-1") == 1
    assert repo.search_vec(table, "kb-1", [1.0, 0.0], limit=5) == []


def test_delete_vec_by_source_without_chunks(repo):
    repo.add_source(_source())
    assert repo.delete_vec_by_source("src-1") == 0


# ------------------------------------------------------------------
# Conversations + messages
# ------------------------------------------------------------------

def test_get_or_create_conversation_is_stable(repo):
    first = repo.get_or_create_conversation("kb-1", "session-1")
    second = repo.get_or_create_conversation("kb-1", "session-1")
    other = repo.get_or_create_conversation("kb-2", "session-1")
    assert first.id == second.id
    assert other.id != first.id


def test_get_conversation_does_not_create(repo):
    assert repo.get_conversation("kb-1", "session-1") is None
    created = repo.get_or_create_conversation("kb-1", "session-1")
    assert repo.get_conversation("kb-1", "session-1") == created
    assert repo.get_conversation("kb-2", "session-1") is None


def test_recent_messages_newest_first_and_limited(repo):
    conv = repo.get_or_create_conversation("kb-1", "s")
    for i in range(5):
        role = Role.USER if i % 2 == 0 else Role.ASSISTANT
        repo.add_message(conv.id, role, f"m{i}")
    turns = repo.recent_messages(conv.id, 3)
    assert [t.content for t in turns] == ["m4", "m3", "m2"]
    assert turns[0].role is Role.USER
    assert turns[1].role is Role.ASSISTANT


def test_add_message_rejects_unknown_role(repo):
    conv = repo.get_or_create_conversation("kb-1", "s")
    with pytest.raises(ValueError):
        repo.add_message(conv.id, "system", "nope")
