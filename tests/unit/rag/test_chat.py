"""Tests for the chat flow (history → retrieval → generation → persistence)."""

from __future__ import annotations

import math
from unittest.mock import patch

import pytest

from docent.db.models import Role
from docent.errors import FALLBACK_REPLY, ChatError, ServiceError
from docent.rag.assembler import NO_CONTEXT
from docent.rag.chat import ChatService
from docent.rag.generator import ResponseGenerator
from docent.rag.history import ConversationHistoryManager
from docent.rag.index import LinearScanIndex
from docent.rag.retriever import Retriever

_QUESTION = "How are chunks stored?"


def _unit(cos: float) -> list[float]:
    return [cos, math.sqrt(max(0.0, 1.0 - cos * cos))]


@pytest.fixture
def service(repo, seed, fake_embedder):
    seed("kb1", [("Chunks live in SQLite.", _unit(0.95)), ("Unrelated.", _unit(0.1))])
    embedder = fake_embedder(vectors={_QUESTION: [1.0, 0.0]})
    return ChatService(repo, Retriever(embedder, LinearScanIndex(repo)), ResponseGenerator())


def test_reply_persists_user_and_assistant_messages(repo, service):
    with patch("docent.rag.generator.complete", return_value="In **SQLite**.") as mock_complete:
        reply = service.reply("kb1", "s1", _QUESTION)

    assert reply.content == "In **SQLite**."
    assert reply.context == "Chunks live in SQLite."
    assert [sc.chunk.content for sc in reply.chunks] == ["Chunks live in SQLite."]
    system = mock_complete.call_args.kwargs["messages"][0]["content"]
    assert "Chunks live in SQLite." in system

    turns = repo.recent_messages(reply.conversation_id, 10)
    assert [(t.role, t.content) for t in reversed(turns)] == [
        (Role.USER, _QUESTION),
        (Role.ASSISTANT, "In **SQLite**."),
    ]


def test_second_reply_sees_prior_turns(repo, service):
    with patch("docent.rag.generator.complete", return_value="First answer."):
        service.reply("kb1", "s1", _QUESTION)
    with patch("docent.rag.generator.complete", return_value="Second answer.") as mock_complete:
        reply = service.reply("kb1", "s1", _QUESTION)

    messages = mock_complete.call_args.kwargs["messages"]
    assert [m["content"] for m in messages[1:]] == [_QUESTION, "First answer.", _QUESTION]
    assert len(repo.recent_messages(reply.conversation_id, 10)) == 4


def test_sessions_are_separate_conversations(service):
    with patch("docent.rag.generator.complete", return_value="ok"):
        a = service.reply("kb1", "s1", _QUESTION)
        b = service.reply("kb1", "s2", _QUESTION)
    assert a.conversation_id != b.conversation_id


def test_history_window_is_applied(repo, seed, fake_embedder):
    seed("kb1", [("text", _unit(0.9))])
    service = ChatService(
        repo,
        Retriever(fake_embedder(vectors={_QUESTION: [1.0, 0.0]}), LinearScanIndex(repo)),
        ResponseGenerator(),
        history=ConversationHistoryManager(repo, limit=0),
    )
    with patch("docent.rag.generator.complete", return_value="ok"):
        service.reply("kb1", "s1", _QUESTION)
    with patch("docent.rag.generator.complete", return_value="ok") as mock_complete:
        service.reply("kb1", "s1", _QUESTION)

    assert len(mock_complete.call_args.kwargs["messages"]) == 2


def test_empty_knowledge_base_uses_sentinel_context(repo, fake_embedder):
    service = ChatService(repo, Retriever(fake_embedder(), LinearScanIndex(repo)), ResponseGenerator())
    with patch("docent.rag.generator.complete", return_value="I don't know.") as mock_complete:
        reply = service.reply("empty-kb", "s1", _QUESTION)

    assert reply.context == NO_CONTEXT
    assert reply.chunks == []
    assert NO_CONTEXT in mock_complete.call_args.kwargs["messages"][0]["content"]


def test_generation_failure_raises_chat_error_and_persists_nothing(repo, service):
    with patch("docent.rag.generator.complete", side_effect=ServiceError("quota")):
        with pytest.raises(ChatError) as excinfo:
            service.reply("kb1", "s1", _QUESTION)

    assert excinfo.value.user_message == FALLBACK_REPLY
    assert isinstance(excinfo.value.__cause__, ServiceError)
    assert repo.get_conversation("kb1", "s1") is None


def test_query_embedding_failure_raises_chat_error(repo, seed, fake_embedder):
    seed("kb1", [("text", _unit(0.9))])
    service = ChatService(
        repo,
        Retriever(fake_embedder(fail_on={_QUESTION}), LinearScanIndex(repo)),
        ResponseGenerator(),
    )
    with patch("docent.rag.generator.complete") as mock_complete:
        with pytest.raises(ChatError):
            service.reply("kb1", "s1", _QUESTION)
    mock_complete.assert_not_called()
    assert repo.get_conversation("kb1", "s1") is None


@pytest.mark.parametrize("session,message", [("s1", ""), ("s1", "   "), ("", "hi"), ("  ", "hi")])
def test_blank_message_or_session_rejected(service, session, message):
    with pytest.raises(ValueError, match="required"):
        service.reply("kb1", session, message)


def test_failure_in_existing_conversation_keeps_prior_turns(repo, service):
    with patch("docent.rag.generator.complete", return_value="First answer."):
        first = service.reply("kb1", "s1", _QUESTION)
    with patch("docent.rag.generator.complete", side_effect=ServiceError("quota")):
        with pytest.raises(ChatError):
            service.reply("kb1", "s1", _QUESTION)

    assert repo.get_conversation("kb1", "s1").id == first.conversation_id
    assert len(repo.recent_messages(first.conversation_id, 10)) == 2
