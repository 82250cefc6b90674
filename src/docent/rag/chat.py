"""Chat flow: history → retrieval → context → generation → persisted reply."""

from __future__ import annotations

from dataclasses import dataclass, field

from docent.db.models import Role
from docent.db.repository import Repository
from docent.errors import ChatError, ServiceError
from docent.log import get_logger
from docent.rag.assembler import assemble
from docent.rag.generator import ResponseGenerator
from docent.rag.history import ConversationHistoryManager
from docent.rag.index import ScoredChunk
from docent.rag.retriever import Retriever

logger = get_logger(__name__)


@dataclass
class ChatReply:
    """The assistant's answer and what grounded it."""

    conversation_id: str
    content: str
    context: str
    chunks: list[ScoredChunk] = field(default_factory=list)


class ChatService:
    """Answer one user message within a (knowledge base, session) conversation.

    Args:
        repo: Open Repository (conversations and messages).
        retriever: Ranks the knowledge base against the message.
        generator: Produces the reply from history and context.
        history: History window; defaults to the last 10 turns.
        token_budget: Optional cap on context tokens.
    """

    def __init__(
        self,
        repo: Repository,
        retriever: Retriever,
        generator: ResponseGenerator,
        history: ConversationHistoryManager | None = None,
        token_budget: int | None = None,
    ) -> None:
        self._repo = repo
        self._retriever = retriever
        self._generator = generator
        self._history = history or ConversationHistoryManager(repo)
        self._token_budget = token_budget

    def reply(self, knowledge_base_id: str, session_id: str, message: str) -> ChatReply:
        """Generate and persist the assistant reply to *message*.

        Raises:
            ValueError: If *message* or *session_id* is blank.
            ChatError: If the query embedding or the generation call fails;
                nothing is persisted in that case.
        """
        if not message or not message.strip():
            raise ValueError("Message is required.")
        if not session_id or not session_id.strip():
            raise ValueError("Session ID is required.")

        existing = self._repo.get_conversation(knowledge_base_id, session_id)
        turns = self._history.build(existing.id if existing else None, message)

        try:
            ranked = self._retriever.retrieve_scored(message, knowledge_base_id)
            context = assemble(
                [sc.chunk.content for sc in ranked],
                token_budget=self._token_budget,
                model=self._generator.model,
            )
            answer = self._generator.generate(turns, context)
        except ServiceError as exc:
            logger.error(
                "chat_failed",
                kb=knowledge_base_id,
                session=session_id,
                error=str(exc),
            )
            raise ChatError(f"Could not answer message: {exc}") from exc

        conversation = existing or self._repo.get_or_create_conversation(
            knowledge_base_id, session_id
        )
        self._repo.add_message(conversation.id, Role.USER, message)
        self._repo.add_message(conversation.id, Role.ASSISTANT, answer)
        logger.info(
            "chat_replied",
            kb=knowledge_base_id,
            conversation=conversation.id,
            chunks=len(ranked),
        )
        return ChatReply(
            conversation_id=conversation.id,
            content=answer,
            context=context,
            chunks=ranked,
        )
