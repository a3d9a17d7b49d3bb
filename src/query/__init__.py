"""Query sanitization and rule-based intent classification."""

from .classifier import (
    RULES,
    ClassificationResult,
    Rule,
    classify,
    has_continuation_cue,
    has_recency_cue,
    suggest_follow_ups,
)
from .sanitize import DEFAULT_MAX_LENGTH, InputRejected, sanitize_input

__all__ = [
    "ClassificationResult",
    "Rule",
    "RULES",
    "classify",
    "has_recency_cue",
    "has_continuation_cue",
    "suggest_follow_ups",
    "InputRejected",
    "sanitize_input",
    "DEFAULT_MAX_LENGTH",
]
