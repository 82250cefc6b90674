"""Tests for the docent exception hierarchy."""

from __future__ import annotations

from docent.errors import (
    FALLBACK_REPLY,
    ChatError,
    DocentError,
    ExtractionError,
    ServiceError,
    SsrfError,
)


def test_hierarchy():
    assert issubclass(ServiceError, DocentError)
    assert issubclass(ExtractionError, DocentError)
    assert issubclass(SsrfError, ExtractionError)
    assert issubclass(ChatError, DocentError)


def test_service_error_prefixes_model():
    assert str(ServiceError("quota exceeded", model="openai/gpt-4o")) == "[openai/gpt-4o] quota exceeded"
    assert str(ServiceError("timeout")) == "timeout"


def test_chat_error_carries_fallback_message():
    err = ChatError("embedding failed")
    assert err.user_message == FALLBACK_REPLY
    assert "try again" in err.user_message.lower()
