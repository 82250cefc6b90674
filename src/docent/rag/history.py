"""Conversation history window handed to the response generator."""

from __future__ import annotations

from docent.db.models import Role, Turn
from docent.db.repository import Repository

DEFAULT_HISTORY_LIMIT = 10


class ConversationHistoryManager:
    """Bound and order prior turns of a conversation."""

    def __init__(self, repo: Repository, limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        if limit < 0:
            raise ValueError(f"limit must be >= 0, got {limit}")
        self._repo = repo
        self.limit = limit

    def recent(self, conversation_id: str | None, limit: int | None = None) -> list[Turn]:
        """Return the newest *limit* turns, oldest first (none for a new conversation)."""
        limit = self.limit if limit is None else limit
        if conversation_id is None or limit <= 0:
            return []
        newest_first = self._repo.recent_messages(conversation_id, limit)
        return list(reversed(newest_first))

    def build(
        self, conversation_id: str | None, incoming: str, limit: int | None = None
    ) -> list[Turn]:
        """Return recent turns followed by the *incoming* user message."""
        turns = self.recent(conversation_id, limit)
        turns.append(Turn(role=Role.USER, content=incoming))
        return turns
