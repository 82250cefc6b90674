"""docent database layer."""

from docent.db.connection import Database
from docent.db.migrations import MIGRATIONS, run_migrations
from docent.db.repository import Repository
from docent.db.schema import initialize
from docent.db.vectors import (
    decode_vector,
    encode_vector,
    ensure_vec_table,
    model_to_slug,
    vec_table_name,
)

__all__ = [
    "Database",
    "Repository",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "decode_vector",
    "encode_vector",
    "ensure_vec_table",
    "model_to_slug",
    "vec_table_name",
]
