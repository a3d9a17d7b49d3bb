"""Token estimation and sentence-boundary trimming."""

import math
import re

_SENTENCE_END_RE = re.compile(r"(?<=[.!?])\s+")


def estimate_tokens(text: str) -> int:
    """Rough token count: one token per four characters, rounded up."""
    return math.ceil(len(text) / 4) if text else 0


def split_sentences(text: str) -> list[str]:
    return [s.strip() for s in _SENTENCE_END_RE.split(text.strip()) if s.strip()]


def leading_sentences(text: str, max_tokens: int) -> str:
    """Longest run of whole leading sentences that fits in max_tokens.

    Returns "" when not even the first sentence fits. Text without sentence
    punctuation is a single sentence and is never cut.
    """
    kept: list[str] = []
    for sentence in split_sentences(text):
        attempt = " ".join([*kept, sentence])
        if estimate_tokens(attempt) > max_tokens:
            break
        kept.append(sentence)
    return " ".join(kept)
