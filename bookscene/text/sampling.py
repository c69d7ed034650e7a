"""Bounded text sampling for LLM prompts."""

from __future__ import annotations

from typing import Iterable


def sample_words(texts: Iterable[str], max_words: int) -> str:
    """Concatenate texts in order until `max_words` tokens have been taken.

    Whole texts are joined with a blank line; the text that crosses the
    budget is cut at a word boundary and sampling stops.
    """

    parts: list[str] = []
    taken = 0
    for text in texts:
        remaining = max_words - taken
        if remaining <= 0:
            break
        words = text.split()
        if len(words) <= remaining:
            parts.append(text)
            taken += len(words)
            continue
        parts.append(" ".join(words[:remaining]))
        break
    return "\n\n".join(parts)


def truncate_words(text: str, max_words: int, suffix: str = "...") -> str:
    """Return `text` unchanged when within budget, else its first words plus `suffix`."""

    words = text.split()
    if len(words) <= max_words:
        return text
    return " ".join(words[:max_words]) + suffix
