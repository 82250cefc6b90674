"""Domain models for the docent database layer."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum


class SourceType(str, Enum):
    """Where a source's text came from."""

    REMOTE_PAGE = "remote-page"
    RAW_TEXT = "raw-text"
    UPLOADED_FILE = "uploaded-file"


class SourceStatus(str, Enum):
    """Source lifecycle: pending → processing → completed | completed-with-errors | failed."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed-with-errors"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (
            SourceStatus.COMPLETED,
            SourceStatus.COMPLETED_WITH_ERRORS,
            SourceStatus.FAILED,
        )


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class Source:
    id: str
    knowledge_base_id: str
    type: SourceType
    name: str
    url: str | None = None
    content: str = ""
    status: SourceStatus = SourceStatus.PENDING
    error_message: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class ChunkMetadata:
    """Known metadata fields stored with every chunk.

    Serialised with the camelCase keys of the persisted chunk shape.
    """

    source: str
    type: str
    chunk_index: int
    total_chunks: int

    def to_json(self) -> str:
        return json.dumps(
            {
                "source": self.source,
                "type": self.type,
                "chunkIndex": self.chunk_index,
                "totalChunks": self.total_chunks,
            }
        )

    @classmethod
    def from_json(cls, raw: str) -> ChunkMetadata:
        data = json.loads(raw or "{}")
        return cls(
            source=str(data.get("source", "")),
            type=str(data.get("type", "")),
            chunk_index=int(data.get("chunkIndex", 0)),
            total_chunks=int(data.get("totalChunks", 0)),
        )


@dataclass
class Chunk:
    id: str
    source_id: str
    chunk_index: int
    content: str
    embedding: str | None = None  # JSON-encoded float list; None when embedding failed
    metadata: str = field(default_factory=lambda: "{}")
    created_at: str | None = None
    rowid: int | None = None  # set after insert; None for unsaved chunks

    @property
    def metadata_obj(self) -> ChunkMetadata:
        return ChunkMetadata.from_json(self.metadata)

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding) and self.embedding.strip() not in ("", "[]")


@dataclass
class Turn:
    """One conversation turn as handed to the response generator."""

    role: Role
    content: str

    def as_message(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


@dataclass
class Conversation:
    id: str
    knowledge_base_id: str
    session_id: str
    created_at: str | None = None


@dataclass
class SourceResult:
    """Outcome of one ingestion run.

    ``succeeded + failed`` always equals the number of chunks the source produced.
    """

    source_id: str
    succeeded: int
    failed: int
    status: SourceStatus
    error_message: str | None = None

    @property
    def total(self) -> int:
        return self.succeeded + self.failed
