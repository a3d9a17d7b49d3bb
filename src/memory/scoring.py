"""Similarity scoring: cosine for vectors, term overlap for lexical fallback."""

import math
import re
from typing import Sequence

_TOKEN_RE = re.compile(r"[a-z0-9]+(?:'[a-z]+)?")

# Function words that carry no retrieval signal. Possessives like "my" stay:
# they are what ties a question to a personal statement.
STOPWORDS = frozenset(
    {
        "a", "an", "the", "do", "does", "did", "you", "your", "is", "are", "was",
        "were", "be", "been", "am", "what", "whats", "who", "how", "why", "when",
        "where", "which", "to", "of", "in", "on", "at", "for", "and", "or", "it",
        "its", "that", "this", "these", "those", "can", "could", "would", "should",
        "will", "please", "tell", "me", "i", "with", "about", "as", "by", "from",
        "so", "if", "then", "there", "any", "some", "have", "has", "had",
    }
)


class DimensionMismatch(ValueError):
    """Two vectors of different dimensionality were compared."""


def tokenize(text: str) -> list[str]:
    return _TOKEN_RE.findall(text.lower())


def content_terms(text: str) -> list[str]:
    """Unique non-stopword tokens in first-seen order."""
    seen: dict[str, None] = {}
    for token in tokenize(text):
        if token not in STOPWORDS and len(token) > 1:
            seen.setdefault(token, None)
    return list(seen)


def normalize(text: str) -> str:
    return " ".join(tokenize(text))


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity clamped to 0-1.

    Raises:
        DimensionMismatch: vectors differ in length
    """
    if len(a) != len(b):
        raise DimensionMismatch(f"cannot compare {len(a)}-dim with {len(b)}-dim vector")
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return max(0.0, min(1.0, dot / (norm_a * norm_b)))


def lexical_score(query: str, text: str) -> float:
    """Term-overlap score with an earlier-position bonus, on the 0-1 scale.

    An exact (normalized) substring match of the whole query scores 1.0.
    Otherwise coverage of the query's content terms is scaled by
    0.8 + 0.2 * (1 - relative position of the earliest matching term).
    """
    norm_query = normalize(query)
    norm_text = normalize(text)
    if not norm_query or not norm_text:
        return 0.0
    if f" {norm_query} " in f" {norm_text} ":
        return 1.0

    terms = content_terms(query)
    if not terms:
        return 0.0

    tokens = norm_text.split()
    first_index: dict[str, int] = {}
    for i, token in enumerate(tokens):
        first_index.setdefault(token, i)

    matched = [first_index[t] for t in terms if t in first_index]
    if not matched:
        return 0.0

    coverage = len(matched) / len(terms)
    position = min(matched) / max(len(tokens) - 1, 1)
    return round(coverage * (0.8 + 0.2 * (1 - position)), 6)
