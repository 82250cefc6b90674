"""Exception hierarchy for docent.

    DocentError       (base)
    +-- ServiceError     embedding / generation call failed
    +-- ExtractionError  no usable text could be pulled from a source
    |   +-- SsrfError    URL resolves to a private or reserved address
    +-- ChatError        request-level failure in the chat flow

ConfigError lives in docent.config (it is a ValueError, raised while loading).
"""

from __future__ import annotations

FALLBACK_REPLY = "I'm having trouble responding right now. Please try again."


class DocentError(Exception):
    """Base class for all docent errors."""


class ServiceError(DocentError):
    """An external embedding or generation call failed.

    Attributes:
        model: LiteLLM model string of the call that failed (if known).
    """

    def __init__(self, message: str, model: str | None = None) -> None:
        super().__init__(message)
        self.model = model

    def __str__(self) -> str:
        base = super().__str__()
        return f"[{self.model}] {base}" if self.model else base


class ExtractionError(DocentError):
    """No usable text could be extracted from a source."""


class SsrfError(ExtractionError):
    """Raised when a URL resolves to a private or reserved address."""


class ChatError(DocentError):
    """A chat request failed; ``user_message`` is safe to show the end user."""

    def __init__(self, message: str, user_message: str = FALLBACK_REPLY) -> None:
        super().__init__(message)
        self.user_message = user_message
