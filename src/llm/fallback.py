"""Deterministic hashed embedding used when every embedding provider fails."""

import hashlib
import math
import re

FALLBACK_PROVIDER = "fallback"
FALLBACK_DIMENSION = 128

_TOKEN_RE = re.compile(r"[a-z0-9']+")


def _bucket(token: str, dimension: int) -> tuple[int, float]:
    digest = hashlib.sha256(token.encode("utf-8")).digest()
    index = int.from_bytes(digest[:4], "big") % dimension
    sign = 1.0 if digest[4] & 1 else -1.0
    return index, sign


def hash_embedding(text: str, dimension: int = FALLBACK_DIMENSION) -> list[float]:
    """Hashed bag-of-words vector, L2-normalized.

    Same text always yields the same vector. Empty text yields the zero vector.
    """
    vector = [0.0] * dimension
    for token in _TOKEN_RE.findall(text.lower()):
        index, sign = _bucket(token, dimension)
        vector[index] += sign

    norm = math.sqrt(sum(v * v for v in vector))
    if norm == 0:
        return vector
    return [v / norm for v in vector]
