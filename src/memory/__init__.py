"""Conversational memory — owner-scoped records with hybrid retrieval."""

from .backends import InMemoryBackend, MemoryBackend, SQLiteBackend
from .models import MemoryRecord, MemoryUnavailable, RecordFilter, ScoredRecord
from .scoring import DimensionMismatch, cosine_similarity, lexical_score
from .store import MemoryStore

__all__ = [
    "MemoryBackend",
    "InMemoryBackend",
    "SQLiteBackend",
    "MemoryRecord",
    "MemoryUnavailable",
    "RecordFilter",
    "ScoredRecord",
    "MemoryStore",
    "DimensionMismatch",
    "cosine_similarity",
    "lexical_score",
]
