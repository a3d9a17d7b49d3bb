"""Response validation — fact support and contradiction checks."""

from .models import Contradiction, FactCheck, ValidationInconclusive, ValidationResult
from .validator import ResponseValidator, extract_claims, is_negated

__all__ = [
    "ResponseValidator",
    "ValidationResult",
    "ValidationInconclusive",
    "FactCheck",
    "Contradiction",
    "extract_claims",
    "is_negated",
]
