"""Tests for database schema initialization."""

from __future__ import annotations

import sqlite3

import pytest

from docent.db.schema import CURRENT_VERSION, initialize


def _table_columns(conn, table: str) -> set[str]:
    rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
    return {row["name"] for row in rows}


def _add_source(conn, source_id="src-1", kb="kb-1"):
    conn.execute(
        "INSERT INTO sources (id, knowledge_base_id, type, name) VALUES (?, ?, ?, ?)",
        (source_id, kb, "raw-text", "notes"),
    )


def test_sources_columns(tmp_db):
    cols = _table_columns(tmp_db, "sources")
    assert cols == {
        "id", "knowledge_base_id", "type", "name", "url", "content",
        "status", "error_message", "created_at", "updated_at",
    }


def test_chunks_columns(tmp_db):
    cols = _table_columns(tmp_db, "chunks")
    assert cols == {
        "id", "source_id", "chunk_index", "content", "embedding", "metadata", "created_at",
    }


def test_conversation_and_message_columns(tmp_db):
    assert _table_columns(tmp_db, "conversations") == {
        "id", "knowledge_base_id", "session_id", "created_at",
    }
    assert _table_columns(tmp_db, "messages") == {
        "id", "conversation_id", "role", "content", "created_at",
    }


def test_schema_version_recorded(tmp_db):
    version = tmp_db.execute("SELECT version FROM schema_version").fetchone()[0]
    assert version == CURRENT_VERSION


def test_initialize_idempotent(tmp_db):
    initialize(tmp_db)
    rows = tmp_db.execute("SELECT COUNT(*) FROM schema_version").fetchone()[0]
    assert rows == 1


def test_new_source_defaults(tmp_db):
    _add_source(tmp_db)
    row = tmp_db.execute("SELECT status, content FROM sources WHERE id = 'src-1'").fetchone()
    assert row["status"] == "pending"
    assert row["content"] == ""


def test_chunks_rowid_is_implicit(tmp_db):
    _add_source(tmp_db)
    tmp_db.execute(
        "INSERT INTO chunks (id, source_id, chunk_index, content) VALUES (?, ?, ?, ?)",
        ("c-1", "src-1", 0, "hello world"),
    )
    row = tmp_db.execute("SELECT rowid, content, embedding FROM chunks").fetchone()
    assert row["rowid"] == 1
    assert row["content"] == "hello world"
    assert row["embedding"] is None


def test_sources_foreign_key_cascade(tmp_db):
    _add_source(tmp_db, "src-del")
    tmp_db.execute(
        "INSERT INTO chunks (id, source_id, chunk_index, content) VALUES (?, ?, ?, ?)",
        ("c-del", "src-del", 0, "text"),
    )
    tmp_db.execute("DELETE FROM sources WHERE id = ?", ("src-del",))
    tmp_db.commit()
    count = tmp_db.execute("SELECT COUNT(*) FROM chunks WHERE source_id = ?", ("src-del",)).fetchone()[0]
    assert count == 0


def test_conversation_unique_per_kb_and_session(tmp_db):
    tmp_db.execute(
        "INSERT INTO conversations (id, knowledge_base_id, session_id) VALUES ('c1', 'kb', 's')"
    )
    with pytest.raises(sqlite3.IntegrityError):
        tmp_db.execute(
            "INSERT INTO conversations (id, knowledge_base_id, session_id) VALUES ('c2', 'kb', 's')"
        )
    # Same session id in another knowledge base is a different conversation.
    tmp_db.execute(
        "INSERT INTO conversations (id, knowledge_base_id, session_id) VALUES ('c3', 'kb2', 's')"
    )
