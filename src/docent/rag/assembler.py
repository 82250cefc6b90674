"""Context assembler: ranked chunk texts → one grounding string for the generator.

Chunks are joined best-first with a blank line between them. With a token
budget, chunks are added until the next one would overflow it; the top-ranked
chunk is always kept. An empty input yields the ``NO_CONTEXT`` sentinel so the
generator can say it has no answer instead of inventing one.
"""

from __future__ import annotations

from collections.abc import Sequence

from docent.rag.llm_client import count_tokens

NO_CONTEXT = "No relevant information found."
CHUNK_SEPARATOR = "\n\n"


def assemble(
    ranked: Sequence[str],
    token_budget: int | None = None,
    model: str | None = None,
) -> str:
    """Join *ranked* chunk texts, or return ``NO_CONTEXT`` when nothing usable remains.

    Args:
        ranked: Chunk texts, most relevant first.
        token_budget: Maximum context tokens (None = unbounded).
        model: Model whose tokenizer measures the budget.
    """
    texts = [t for t in ranked if t and t.strip()]
    if token_budget is not None and texts:
        texts, _ = apply_token_budget(texts, model or "openai/gpt-4o", token_budget)
    if not texts:
        return NO_CONTEXT
    return CHUNK_SEPARATOR.join(texts)


def apply_token_budget(texts: Sequence[str], model: str, budget: int) -> tuple[list[str], int]:
    """Select leading *texts* that fit within *budget* tokens. Returns (selected, total_tokens)."""
    selected: list[str] = []
    total = 0
    for text in texts:
        tokens = count_tokens(model, text)
        if selected and total + tokens > budget:
            break
        selected.append(text)
        total += tokens
    return selected, total
