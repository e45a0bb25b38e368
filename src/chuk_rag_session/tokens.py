# chuk_rag_session/tokens.py
"""
Word-based token estimation.

Advisory only: governs how much content is assembled before a call. Once a
backend reports its own token accounting, that figure wins.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping

# Tokens per word is closer to 0.75 for English; 0.55 errs on the conservative side.
TOKENS_PER_WORD = 0.55

# Tag overhead for passages wrapped in <CHUNK>/<URL>/<CONTENT> markup, which
# the word heuristic undercounts by roughly 13%.
MARKUP_FACTOR = 1.15

CHUNK_MARKER = "<CHUNK>"


def estimate_tokens(text: str = "", has_markup: bool = False) -> int:
    """Estimate the token count of ``text``. Always ``>= 0``."""
    words = len(text.split())
    # round() drops float noise such as 11 / 0.55 == 20.000000000000004
    base = math.ceil(round(words / TOKENS_PER_WORD, 6))
    if has_markup:
        return math.ceil(round(base * MARKUP_FACTOR, 6))
    return base


def has_chunk_markup(text: str) -> bool:
    return CHUNK_MARKER in text


def estimate_messages(messages: Iterable[Mapping[str, str]]) -> int:
    """Estimate a whole message array, applying the markup factor where passages appear."""
    total = 0
    for message in messages:
        content = message.get("content", "")
        total += estimate_tokens(content, has_markup=has_chunk_markup(content))
    return total
