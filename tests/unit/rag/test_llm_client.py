"""Tests for the LiteLLM client wrapper."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from docent.errors import ServiceError
from docent.rag.llm_client import (
    EmbeddingClient,
    complete,
    count_tokens,
    embed,
    validate_api_key,
)


# ------------------------------------------------------------------
# validate_api_key
# ------------------------------------------------------------------


def test_validate_api_key_raises_if_missing(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(ServiceError, match="OPENAI_API_KEY"):
        validate_api_key("openai/gpt-4o")


def test_validate_api_key_passes_if_set(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-key")
    validate_api_key("openai/gpt-4o")


def test_validate_api_key_anthropic(monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    with pytest.raises(ServiceError, match="ANTHROPIC_API_KEY"):
        validate_api_key("anthropic/claude-3-5-sonnet-20241022")


def test_validate_api_key_ollama_no_key_required():
    validate_api_key("ollama/llama2")


def test_validate_api_key_bare_model_treated_as_openai(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(ServiceError):
        validate_api_key("text-embedding-3-small")


# ------------------------------------------------------------------
# complete
# ------------------------------------------------------------------


def _completion(content):
    response = MagicMock()
    response.choices[0].message.content = content
    return response


def test_complete_returns_content():
    with patch("docent.rag.llm_client.litellm.completion", return_value=_completion("hello")) as m:
        assert complete("openai/gpt-4o", [{"role": "user", "content": "hi"}]) == "hello"
    assert m.call_args.kwargs["num_retries"] == 0
    assert m.call_args.kwargs["max_tokens"] == 800


def test_complete_none_content_is_empty_string():
    with patch("docent.rag.llm_client.litellm.completion", return_value=_completion(None)):
        assert complete("openai/gpt-4o", []) == ""


def test_complete_wraps_provider_errors():
    with patch("docent.rag.llm_client.litellm.completion", side_effect=RuntimeError("503")):
        with pytest.raises(ServiceError, match="503") as excinfo:
            complete("openai/gpt-4o", [])
    assert excinfo.value.model == "openai/gpt-4o"


# ------------------------------------------------------------------
# embed
# ------------------------------------------------------------------


def _embedding(vector):
    response = MagicMock()
    response.data = [{"embedding": vector}]
    return response


def test_embed_returns_floats():
    with patch(
        "docent.rag.llm_client.litellm.embedding", return_value=_embedding([1, 0.5, -2])
    ) as m:
        assert embed("openai/text-embedding-3-small", "text") == [1.0, 0.5, -2.0]
    assert m.call_args.kwargs == {
        "model": "openai/text-embedding-3-small",
        "input": ["text"],
        "num_retries": 0,
    }


def test_embed_empty_vector_is_an_error():
    with patch("docent.rag.llm_client.litellm.embedding", return_value=_embedding([])):
        with pytest.raises(ServiceError, match="empty vector"):
            embed("openai/text-embedding-3-small", "text")


@pytest.mark.parametrize("vector", [[1.0, None], [0.5, "abc"]])
def test_embed_malformed_vector_is_an_error(vector):
    with patch("docent.rag.llm_client.litellm.embedding", return_value=_embedding(vector)):
        with pytest.raises(ServiceError, match="malformed vector"):
            embed("openai/text-embedding-3-small", "text")


def test_embed_wraps_provider_errors():
    with patch("docent.rag.llm_client.litellm.embedding", side_effect=TimeoutError("slow")):
        with pytest.raises(ServiceError, match="slow"):
            embed("openai/text-embedding-3-small", "text")


def test_embedding_client_uses_its_model():
    with patch("docent.rag.llm_client.litellm.embedding", return_value=_embedding([0.1])) as m:
        assert EmbeddingClient("cohere/embed-english-v3.0").embed("hi") == [0.1]
    assert m.call_args.kwargs["model"] == "cohere/embed-english-v3.0"


# ------------------------------------------------------------------
# count_tokens
# ------------------------------------------------------------------


def test_count_tokens_uses_litellm():
    with patch("docent.rag.llm_client.litellm.token_counter", return_value=7):
        assert count_tokens("openai/gpt-4o", "some text") == 7


def test_count_tokens_falls_back_to_char_estimate():
    with patch("docent.rag.llm_client.litellm.token_counter", side_effect=ValueError("unknown")):
        assert count_tokens("mystery/model", "a" * 40) == 10
        assert count_tokens("mystery/model", "") == 1
