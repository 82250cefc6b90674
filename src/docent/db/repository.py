"""Repository pattern for all docent database operations.

Single interface for: sources, chunks, stored vectors, sqlite-vec rows,
conversations and messages. Vec tables are created by ensure_vec_table();
the repository handles read + write.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from collections.abc import Sequence

from docent.db.models import (
    Chunk,
    Conversation,
    Role,
    Source,
    SourceStatus,
    SourceType,
    Turn,
)

_HAS_EMBEDDING = "c.embedding IS NOT NULL AND TRIM(c.embedding) NOT IN ('', '[]')"
_NO_EMBEDDING = "(c.embedding IS NULL OR TRIM(c.embedding) IN ('', '[]'))"

_CHUNK_COLUMNS = (
    "c.rowid AS rowid, c.id, c.source_id, c.chunk_index, c.content, "
    "c.embedding, c.metadata, c.created_at"
)
_SOURCE_COLUMNS = (
    "id, knowledge_base_id, type, name, url, content, status, error_message, "
    "created_at, updated_at"
)


class Repository:
    """Data access layer for all docent database entities.

    Wraps an open sqlite3.Connection. The connection is owned by the caller
    and must be closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with sqlite-vec loaded and schema
                initialised (see docent.db.schema.initialize).
        """
        self._conn = conn

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def add_source(self, source: Source) -> None:
        """Insert a new source record."""
        self._conn.execute(
            """
            INSERT INTO sources (id, knowledge_base_id, type, name, url, content, status, error_message)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                source.id,
                source.knowledge_base_id,
                SourceType(source.type).value,
                source.name,
                source.url,
                source.content,
                SourceStatus(source.status).value,
                source.error_message,
            ),
        )
        self._conn.commit()

    def get_source(self, source_id: str) -> Source | None:
        """Return a source by ID, or None if not found."""
        row = self._conn.execute(
            f"SELECT {_SOURCE_COLUMNS} FROM sources WHERE id = ?", (source_id,)
        ).fetchone()
        return _row_to_source(row) if row else None

    def list_sources(self, knowledge_base_id: str | None = None) -> list[Source]:
        """Return sources ordered by creation (oldest first), optionally for one knowledge base."""
        if knowledge_base_id is None:
            rows = self._conn.execute(
                f"SELECT {_SOURCE_COLUMNS} FROM sources ORDER BY created_at, rowid"
            ).fetchall()
        else:
            rows = self._conn.execute(
                f"SELECT {_SOURCE_COLUMNS} FROM sources WHERE knowledge_base_id = ? "
                "ORDER BY created_at, rowid",
                (knowledge_base_id,),
            ).fetchall()
        return [_row_to_source(r) for r in rows]

    def finalize_source(
        self,
        source_id: str,
        status: SourceStatus,
        error_message: str | None = None,
        content: str | None = None,
    ) -> None:
        """Record the terminal status of an ingestion run (and the normalized text).

        Args:
            source_id: UUID of the source.
            status: Final lifecycle status.
            error_message: Aggregate or fatal error message, if any.
            content: Normalized source text; left unchanged when None.
        """
        if content is None:
            self._conn.execute(
                """
                UPDATE sources SET status = ?, error_message = ?, updated_at = datetime('now')
                WHERE id = ?
                """,
                (SourceStatus(status).value, error_message, source_id),
            )
        else:
            self._conn.execute(
                """
                UPDATE sources
                SET status = ?, error_message = ?, content = ?, updated_at = datetime('now')
                WHERE id = ?
                """,
                (SourceStatus(status).value, error_message, content, source_id),
            )
        self._conn.commit()

    def delete_source(self, source_id: str) -> None:
        """Delete a source record; its chunks go with it (ON DELETE CASCADE)."""
        self._conn.execute("DELETE FROM sources WHERE id = ?", (source_id,))
        self._conn.commit()

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    def add_chunk(self, chunk: Chunk) -> int:
        """Insert a chunk and return its rowid (also set on *chunk*)."""
        cur = self._conn.execute(
            """
            INSERT INTO chunks (id, source_id, chunk_index, content, embedding, metadata)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                chunk.id,
                chunk.source_id,
                chunk.chunk_index,
                chunk.content,
                chunk.embedding,
                chunk.metadata,
            ),
        )
        self._conn.commit()
        chunk.rowid = cur.lastrowid
        return cur.lastrowid

    def get_chunk(self, chunk_id: str) -> Chunk | None:
        row = self._conn.execute(
            f"SELECT {_CHUNK_COLUMNS} FROM chunks c WHERE c.id = ?", (chunk_id,)
        ).fetchone()
        return _row_to_chunk(row) if row else None

    def get_chunk_by_rowid(self, rowid: int) -> Chunk | None:
        """Return a chunk by its SQLite rowid (the vec table key), or None."""
        row = self._conn.execute(
            f"SELECT {_CHUNK_COLUMNS} FROM chunks c WHERE c.rowid = ?", (rowid,)
        ).fetchone()
        return _row_to_chunk(row) if row else None

    def list_chunks(self, source_id: str) -> list[Chunk]:
        """Return all chunks of *source_id* in creation order."""
        rows = self._conn.execute(
            f"SELECT {_CHUNK_COLUMNS} FROM chunks c WHERE c.source_id = ? "
            "ORDER BY c.chunk_index, c.rowid",
            (source_id,),
        ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def list_embedded_chunks(self, knowledge_base_id: str) -> list[Chunk]:
        """Return every chunk with a stored vector in *knowledge_base_id*, in insertion order."""
        rows = self._conn.execute(
            f"""
            SELECT {_CHUNK_COLUMNS}
            FROM chunks c JOIN sources s ON s.id = c.source_id
            WHERE s.knowledge_base_id = ? AND {_HAS_EMBEDDING}
            ORDER BY c.rowid
            """,
            (knowledge_base_id,),
        ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def count_embedded_chunks(self, knowledge_base_id: str) -> int:
        return self._conn.execute(
            f"""
            SELECT COUNT(*) FROM chunks c JOIN sources s ON s.id = c.source_id
            WHERE s.knowledge_base_id = ? AND {_HAS_EMBEDDING}
            """,
            (knowledge_base_id,),
        ).fetchone()[0]

    def list_unembedded_chunks(self, knowledge_base_id: str | None = None) -> list[Chunk]:
        """Return chunks whose vector is missing (NULL, empty, or ``[]``)."""
        if knowledge_base_id is None:
            rows = self._conn.execute(
                f"SELECT {_CHUNK_COLUMNS} FROM chunks c WHERE {_NO_EMBEDDING} ORDER BY c.rowid"
            ).fetchall()
        else:
            rows = self._conn.execute(
                f"""
                SELECT {_CHUNK_COLUMNS}
                FROM chunks c JOIN sources s ON s.id = c.source_id
                WHERE s.knowledge_base_id = ? AND {_NO_EMBEDDING}
                ORDER BY c.rowid
                """,
                (knowledge_base_id,),
            ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def set_chunk_embedding(self, chunk_id: str, embedding: str) -> None:
        """Attach an encoded vector to an existing chunk."""
        self._conn.execute(
            "UPDATE chunks SET embedding = ? WHERE id = ?", (embedding, chunk_id)
        )
        self._conn.commit()

    def count_chunks_by_source(self, source_id: str) -> int:
        return self._conn.execute(
            "SELECT COUNT(*) FROM chunks WHERE source_id = ?", (source_id,)
        ).fetchone()[0]

    def count_embedded_by_source(self, source_id: str) -> int:
        return self._conn.execute(
            f"SELECT COUNT(*) FROM chunks c WHERE c.source_id = ? AND {_HAS_EMBEDDING}",
            (source_id,),
        ).fetchone()[0]

    def knowledge_base_of_chunk(self, chunk: Chunk) -> str | None:
        row = self._conn.execute(
            "SELECT knowledge_base_id FROM sources WHERE id = ?", (chunk.source_id,)
        ).fetchone()
        return row[0] if row else None

    # ------------------------------------------------------------------
    # sqlite-vec rows
    # ------------------------------------------------------------------

    def add_vec_embedding(
        self, table: str, rowid: int, knowledge_base_id: str, embedding: Sequence[float]
    ) -> None:
        """Insert a vector into a vec table with explicit rowid = chunk rowid."""
        self._conn.execute(
            f"INSERT INTO {table}(rowid, knowledge_base_id, embedding) VALUES (?, ?, ?)",
            (rowid, knowledge_base_id, json.dumps([float(v) for v in embedding])),
        )
        self._conn.commit()

    def search_vec(
        self,
        table: str,
        knowledge_base_id: str,
        embedding: Sequence[float],
        limit: int = 10,
    ) -> list[tuple[Chunk, float]]:
        """KNN search inside one knowledge base. Returns (chunk, cosine distance), nearest first."""
        vec_rows = self._conn.execute(
            f"""
            SELECT rowid, distance FROM {table}
            WHERE embedding MATCH ? AND k = ? AND knowledge_base_id = ?
            ORDER BY distance
            """,
            (json.dumps([float(v) for v in embedding]), limit, knowledge_base_id),
        ).fetchall()

        results: list[tuple[Chunk, float]] = []
        for vec_row in vec_rows:
            chunk = self.get_chunk_by_rowid(vec_row["rowid"])
            if chunk is not None:
                results.append((chunk, vec_row["distance"]))
        return results

    def delete_vec_by_source(self, source_id: str) -> int:
        """Delete all vec rows of *source_id* from every vec table.

        Must run before delete_source(): the chunk rowids are looked up here.
        Returns the total number of vec rows deleted.
        """
        rowids = [
            r[0]
            for r in self._conn.execute(
                "SELECT rowid FROM chunks WHERE source_id = ?", (source_id,)
            ).fetchall()
        ]
        if not rowids:
            return 0

        vec_tables = [
            r[0]
            for r in self._conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name LIKE 'vec_chunks_%' "
                "AND sql LIKE 'CREATE VIRTUAL TABLE%'"
            ).fetchall()
        ]

        total_deleted = 0
        placeholders = ",".join("?" * len(rowids))
        for table in vec_tables:
            cur = self._conn.execute(
                f"DELETE FROM [{table}] WHERE rowid IN ({placeholders})",  # noqa: S608
                rowids,
            )
            total_deleted += max(cur.rowcount, 0)

        self._conn.commit()
        return total_deleted

    # ------------------------------------------------------------------
    # Conversations + messages
    # ------------------------------------------------------------------

    def get_conversation(self, knowledge_base_id: str, session_id: str) -> Conversation | None:
        """Return the conversation for (knowledge base, session), or None."""
        row = self._conn.execute(
            """
            SELECT id, knowledge_base_id, session_id, created_at FROM conversations
            WHERE knowledge_base_id = ? AND session_id = ?
            """,
            (knowledge_base_id, session_id),
        ).fetchone()
        if row is None:
            return None
        return Conversation(
            id=row["id"],
            knowledge_base_id=row["knowledge_base_id"],
            session_id=row["session_id"],
            created_at=row["created_at"],
        )

    def get_or_create_conversation(self, knowledge_base_id: str, session_id: str) -> Conversation:
        """Return the conversation for (knowledge base, session), creating it if needed."""
        self._conn.execute(
            """
            INSERT INTO conversations (id, knowledge_base_id, session_id)
            VALUES (?, ?, ?)
            ON CONFLICT(knowledge_base_id, session_id) DO NOTHING
            """,
            (str(uuid.uuid4()), knowledge_base_id, session_id),
        )
        self._conn.commit()
        return self.get_conversation(knowledge_base_id, session_id)

    def add_message(self, conversation_id: str, role: Role, content: str) -> str:
        """Append a message to a conversation. Returns the new message id."""
        message_id = str(uuid.uuid4())
        self._conn.execute(
            "INSERT INTO messages (id, conversation_id, role, content) VALUES (?, ?, ?, ?)",
            (message_id, conversation_id, Role(role).value, content),
        )
        self._conn.commit()
        return message_id

    def recent_messages(self, conversation_id: str, limit: int) -> list[Turn]:
        """Return up to *limit* messages, newest first."""
        rows = self._conn.execute(
            """
            SELECT role, content FROM messages
            WHERE conversation_id = ?
            ORDER BY rowid DESC
            LIMIT ?
            """,
            (conversation_id, limit),
        ).fetchall()
        return [_row_to_turn(r) for r in rows]


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _row_to_source(row: sqlite3.Row) -> Source:
    return Source(
        id=row["id"],
        knowledge_base_id=row["knowledge_base_id"],
        type=SourceType(row["type"]),
        name=row["name"],
        url=row["url"],
        content=row["content"],
        status=SourceStatus(row["status"]),
        error_message=row["error_message"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_chunk(row: sqlite3.Row) -> Chunk:
    return Chunk(
        rowid=row["rowid"],
        id=row["id"],
        source_id=row["source_id"],
        chunk_index=row["chunk_index"],
        content=row["content"],
        embedding=row["embedding"],
        metadata=row["metadata"],
        created_at=row["created_at"],
    )


def _row_to_turn(row: sqlite3.Row) -> Turn:
    role = Role.USER if str(row["role"]).lower() == "user" else Role.ASSISTANT
    return Turn(role=role, content=row["content"])
