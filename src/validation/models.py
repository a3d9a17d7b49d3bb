"""Validation result models."""

from dataclasses import dataclass, field

from shared_types import ErrorKind


class ValidationInconclusive(Exception):
    """The response could not be validated (empty text or bad input)."""

    kind = ErrorKind.VALIDATION_INCONCLUSIVE


@dataclass(frozen=True)
class FactCheck:
    claim: str
    supported: bool
    source_ids: tuple[str, ...] = ()
    verifiable: bool = True


@dataclass(frozen=True)
class Contradiction:
    fragment_a: str  # the claim from the response
    fragment_b: str  # the source text it conflicts with
    source_id: str | None = None


@dataclass
class ValidationResult:
    fact_checks: list[FactCheck] = field(default_factory=list)
    contradictions: list[Contradiction] = field(default_factory=list)
    confidence: float = 0.7

    def needs_regeneration(self, min_confidence: float) -> bool:
        return self.confidence < min_confidence or bool(self.contradictions)

    def to_dict(self) -> dict:
        return {
            "confidence": self.confidence,
            "claims": len(self.fact_checks),
            "supported": sum(1 for c in self.fact_checks if c.supported),
            "contradictions": [
                {"fragment_a": c.fragment_a, "fragment_b": c.fragment_b}
                for c in self.contradictions
            ],
        }
