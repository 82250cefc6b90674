"""LiteLLM client wrapper with API key validation and error normalisation.

All embedding and chat-completion calls route through this module. Provider
exceptions are converted to ``docent.errors.ServiceError`` so callers only
handle one failure type. Embedding calls never retry here: retry/backoff is the
ingestion layer's job (see ``docent.ingest.embedding_writer.RetryPolicy``).
"""

from __future__ import annotations

import os

import litellm

from docent.errors import ServiceError
from docent.log import get_logger

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True

logger = get_logger(__name__)


# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,  # Local, no key required
    "ollama_chat": None,
}


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Args:
        model: LiteLLM model string in 'provider/model' format.

    Raises:
        ServiceError: If the required key is missing from environment.
    """
    provider = model.split("/")[0].lower() if "/" in model else "openai"
    env_var = _PROVIDER_ENV.get(provider)

    if env_var is None:
        return

    if not os.getenv(env_var):
        raise ServiceError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable.",
            model=model,
        )


def complete(
    model: str,
    messages: list[dict],
    max_tokens: int = 800,
    temperature: float = 0.2,
    num_retries: int = 0,
) -> str:
    """Call litellm.completion() and return the content string ('' when empty).

    Raises:
        ServiceError: On any provider failure or a response without choices.
    """
    try:
        response = litellm.completion(
            model=model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
            num_retries=num_retries,
        )
        return response.choices[0].message.content or ""
    except ServiceError:
        raise
    except Exception as exc:
        logger.warning("completion_failed", model=model, error=str(exc))
        raise ServiceError(f"Chat completion failed: {exc}", model=model) from exc


def embed(model: str, text: str) -> list[float]:
    """Call litellm.embedding() once and return the embedding vector.

    Raises:
        ServiceError: On provider failure or a malformed/empty vector.
    """
    try:
        response = litellm.embedding(model=model, input=[text], num_retries=0)
        vector = response.data[0]["embedding"]
    except Exception as exc:
        raise ServiceError(f"Embedding request failed: {exc}", model=model) from exc

    if not vector:
        raise ServiceError("Embedding response contained an empty vector.", model=model)
    try:
        return [float(v) for v in vector]
    except (TypeError, ValueError) as exc:
        raise ServiceError(
            f"Embedding response contained a malformed vector: {exc}", model=model
        ) from exc


def count_tokens(model: str, text: str) -> int:
    """Count tokens in *text* for *model* using LiteLLM's provider-aware counter.

    Falls back to character-based approximation (4 chars ≈ 1 token) if the model
    is not supported by litellm.token_counter().
    """
    try:
        return litellm.token_counter(model=model, text=text)
    except Exception:
        return max(1, len(text) // 4)


class EmbeddingClient:
    """Text → fixed-length vector for one embedding model.

    The object the pipeline and retriever depend on; tests substitute any
    object with an ``embed(text) -> list[float]`` method.
    """

    def __init__(self, model: str) -> None:
        self.model = model

    def embed(self, text: str) -> list[float]:
        return embed(self.model, text)
