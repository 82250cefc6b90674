"""Response generator: (history, context) → grounded answer via litellm chat completion."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from docent.db.models import Turn
from docent.log import get_logger
from docent.rag.llm_client import complete

logger = get_logger(__name__)

NO_ANSWER_PHRASE = (
    "I don't have information about that in my knowledge base. "
    "Please ask about topics covered in the provided documentation."
)
EMPTY_COMPLETION_REPLY = "I apologize, but I cannot provide a response at the moment."

SYSTEM_PROMPT_TEMPLATE = """\
You are a helpful assistant. You MUST answer questions using ONLY the information \
provided in the context below. Do not use any external knowledge.

KNOWLEDGE BASE CONTEXT:
{context}

INSTRUCTIONS:
- Only use information explicitly stated in the context above.
- If the context contains relevant information, give a detailed answer based on it.
- If the context does not contain the answer, reply exactly: "{no_answer}"
- Refer to the context when answering.

FORMATTING:
- Use markdown: single "-" bullets for lists, **bold** for headings and emphasis.
- Separate sections with one blank line."""


@dataclass
class GeneratorConfig:
    model: str = "openai/gpt-4o"
    temperature: float = 0.2
    max_tokens: int = 800


def build_system_prompt(context: str) -> str:
    return SYSTEM_PROMPT_TEMPLATE.format(context=context, no_answer=NO_ANSWER_PHRASE)


_STACKED_BULLETS_RE = re.compile(r"^[ \t]*[•*\-][ \t]+(?:[•*\-][ \t]+)+", re.MULTILINE)
_BULLET_RE = re.compile(r"^[ \t]*[•*+][ \t]+", re.MULTILINE)
_BLANK_RUN_RE = re.compile(r"\n[ \t]*\n(?:[ \t]*\n)+")
_TRAILING_WS_RE = re.compile(r"[ \t]+$", re.MULTILINE)


def clean_markdown(text: str) -> str:
    """Tidy common formatting slips in model output.

    Stacked bullet markers (``• -``, ``- - -``) collapse to one ``-``, ``•``,
    ``*`` and ``+`` bullets become ``- ``, and runs of blank lines collapse to
    a single blank line. ``**bold**`` is left alone.
    """
    text = _STACKED_BULLETS_RE.sub("- ", text)
    text = _BULLET_RE.sub("- ", text)
    text = _TRAILING_WS_RE.sub("", text)
    text = _BLANK_RUN_RE.sub("\n\n", text)
    return text.strip()


class ResponseGenerator:
    """Turn conversation history plus assembled context into the assistant reply."""

    def __init__(self, config: GeneratorConfig | None = None) -> None:
        self._config = config or GeneratorConfig()

    @property
    def model(self) -> str:
        return self._config.model

    def generate(self, history: Sequence[Turn], context: str) -> str:
        """Return the cleaned answer text.

        Raises:
            ServiceError: If the completion call fails.
        """
        messages = [{"role": "system", "content": build_system_prompt(context)}]
        messages.extend(turn.as_message() for turn in history)

        raw = complete(
            model=self._config.model,
            messages=messages,
            max_tokens=self._config.max_tokens,
            temperature=self._config.temperature,
        )
        if not raw.strip():
            logger.warning("empty_completion", model=self._config.model)
            return EMPTY_COMPLETION_REPLY
        return clean_markdown(raw)
