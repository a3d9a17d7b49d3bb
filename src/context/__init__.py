"""Context optimizer — token-budgeted packing of memory, history and facts."""

from .models import Candidate, ContextBundle, Fragment
from .optimizer import (
    DEFAULT_BUDGETS,
    ContextOptimizer,
    candidates_from_memory,
    candidates_from_turns,
)
from .tokens import estimate_tokens, leading_sentences, split_sentences

__all__ = [
    "Candidate",
    "ContextBundle",
    "Fragment",
    "ContextOptimizer",
    "DEFAULT_BUDGETS",
    "candidates_from_memory",
    "candidates_from_turns",
    "estimate_tokens",
    "leading_sentences",
    "split_sentences",
]
