"""Vector text encoding and per-model sqlite-vec virtual table management.

Vectors live in ``chunks.embedding`` as a JSON array of floats. The optional
sqlite-vec index mirrors them into ``vec_chunks_{model_slug}`` tables.
"""

from __future__ import annotations

import json
import math
import re
import sqlite3
from collections.abc import Sequence


def encode_vector(vector: Sequence[float]) -> str:
    """Serialise *vector* as a JSON array of floats."""
    return json.dumps([float(v) for v in vector])


def decode_vector(raw: str | None) -> list[float]:
    """Parse a stored vector.

    Raises:
        ValueError: If *raw* is missing, not a JSON array, empty, or holds
            non-finite or non-numeric values.
    """
    if not raw:
        raise ValueError("vector is empty")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"vector is not valid JSON: {exc}") from exc
    if not isinstance(data, list) or not data:
        raise ValueError("vector must be a non-empty JSON array")
    values: list[float] = []
    for item in data:
        if isinstance(item, bool) or not isinstance(item, (int, float)):
            raise ValueError(f"vector holds a non-numeric value: {item!r}")
        value = float(item)
        if not math.isfinite(value):
            raise ValueError("vector holds a non-finite value")
        values.append(value)
    return values


def model_to_slug(model: str) -> str:
    """Convert a provider/model string to a valid table name suffix.

    Examples:
        "openai/text-embedding-3-small" -> "openai_text_embedding_3_small"
    """
    return re.sub(r"[^a-z0-9]", "_", model.lower())


def vec_table_name(model_slug: str) -> str:
    """Return the full vec table name for a model slug."""
    return f"vec_chunks_{model_slug}"


def ensure_vec_table(conn: sqlite3.Connection, model_slug: str, dimensions: int) -> str:
    """Create vec_chunks_{model_slug} if it doesn't already exist.

    The table uses cosine distance and is partitioned by knowledge base, so a
    KNN query only ever scans one knowledge base.

    Args:
        conn: Active database connection (sqlite-vec must be loaded).
        model_slug: Sanitized model identifier (use model_to_slug() to generate).
        dimensions: Embedding vector dimensions (e.g. 1536 for text-embedding-3-small).

    Returns:
        The table name (vec_chunks_{model_slug}).
    """
    if not re.fullmatch(r"[a-z0-9_]+", model_slug):
        raise ValueError(
            f"Invalid model_slug '{model_slug}' — use model_to_slug() to sanitize."
        )
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")

    table = vec_table_name(model_slug)
    if not vec_table_exists(conn, table):
        conn.execute(
            f"CREATE VIRTUAL TABLE {table} USING vec0("
            "knowledge_base_id text partition key, "
            f"embedding float[{dimensions}] distance_metric=cosine)"
        )
        conn.commit()

    return table


def vec_table_exists(conn: sqlite3.Connection, table: str) -> bool:
    row = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table,)
    ).fetchone()
    return row is not None


def vec_table_dimensions(conn: sqlite3.Connection, table: str) -> int | None:
    """Return the embedding dimension a vec table was created with, or None if absent."""
    row = conn.execute(
        "SELECT sql FROM sqlite_master WHERE type='table' AND name=?", (table,)
    ).fetchone()
    if row is None:
        return None
    match = re.search(r"float\[(\d+)\]", row[0])
    return int(match.group(1)) if match else None
