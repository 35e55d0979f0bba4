"""Coarse token budget estimation.

Not a tokenizer. Treat the numbers as an order-of-magnitude signal only.
"""

from __future__ import annotations

import math

CHARS_PER_TOKEN = 4
CONTEXT_WINDOW_TOKENS = 200_000


def estimate_tokens(text: str) -> int:
    """Approximate token count of `text` (characters / 4, rounded up)."""
    return tokens_for_chars(len(text))


def tokens_for_chars(char_count: int) -> int:
    """Approximate token count for a character (or byte) count."""
    if char_count < 0:
        raise ValueError(f"char_count must be non-negative, got {char_count}")
    return math.ceil(char_count / CHARS_PER_TOKEN)


def budget_percentage(estimated_tokens: int, ceiling: int = CONTEXT_WINDOW_TOKENS) -> float:
    """Share of the context window used, in percent.

    Never negative, but not capped at 100: values above 100 mean the memory
    already exceeds the usable window.
    """
    if ceiling <= 0:
        raise ValueError(f"ceiling must be positive, got {ceiling}")
    return max(estimated_tokens, 0) * 100.0 / ceiling
