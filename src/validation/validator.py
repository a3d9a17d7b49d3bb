"""Post-hoc response validation: claim support and contradiction detection.

Advisory only. The validator scores a response against the context it was
generated from; it never edits the response.
"""

import re
from typing import Sequence

import structlog

from context.models import ContextBundle
from memory.scoring import content_terms, tokenize

from .models import Contradiction, FactCheck, ValidationInconclusive, ValidationResult

logger = structlog.get_logger(source="validator")

_SENTENCE_RE = re.compile(r"[^.!?]+[.!?]*")

NEGATIONS = frozenset({"not", "no", "never", "none", "neither", "nor", "cannot", "without", "false"})

HEDGE_WORDS = frozenset(
    {"maybe", "perhaps", "possibly", "probably", "might", "likely", "seems", "guess", "unsure"}
)

_OPINION_RE = re.compile(
    r"^\s*(?:i think|i believe|i feel|i guess|maybe|perhaps|probably|in my opinion"
    r"|it seems|it might|i'm not sure|i am not sure)\b",
    re.IGNORECASE,
)

MIN_CLAIM_WORDS = 4
OVERLAP_THRESHOLD = 0.5
NO_CLAIMS_CONFIDENCE = 0.7
NONE_VERIFIABLE_CONFIDENCE = 0.6
CONTRADICTION_PENALTY = 0.25
HEDGING_PENALTY = 0.1
HEDGING_LIMIT = 3


def extract_claims(text: str) -> list[str]:
    """Declarative sentences of at least four words, excluding questions and opinions."""
    claims = []
    for match in _SENTENCE_RE.finditer(text):
        sentence = match.group(0).strip()
        if not sentence or sentence.endswith("?"):
            continue
        if len(sentence.split()) < MIN_CLAIM_WORDS:
            continue
        if _OPINION_RE.search(sentence):
            continue
        claims.append(sentence)
    return claims


def _is_negation(token: str) -> bool:
    return token in NEGATIONS or token.endswith("n't")


def is_negated(text: str) -> bool:
    return any(_is_negation(t) for t in tokenize(text))


def _terms(text: str) -> set[str]:
    return {t for t in content_terms(text) if not _is_negation(t)}


def overlap_ratio(claim_terms: set[str], source_terms: set[str]) -> float:
    if not claim_terms:
        return 0.0
    return len(claim_terms & source_terms) / len(claim_terms)


def hedge_count(text: str) -> int:
    return sum(1 for t in tokenize(text) if t in HEDGE_WORDS)


class ResponseValidator:
    """Scores a response against its context bundle and knowledge facts."""

    def __init__(self, overlap_threshold: float = OVERLAP_THRESHOLD):
        self.overlap_threshold = overlap_threshold

    def _sources(
        self, bundle: ContextBundle | None, knowledge_facts: Sequence[str]
    ) -> list[tuple[str, str]]:
        sources = []
        if bundle is not None:
            for i, fragment in enumerate(bundle.fragments):
                source_id = fragment.ref_id or f"{fragment.source}:{i}"
                sources.append((source_id, fragment.text))
        for i, fact in enumerate(knowledge_facts):
            if fact and fact.strip():
                sources.append((f"knowledge:{i}", fact))
        return sources

    def validate(
        self,
        response_text: str,
        bundle: ContextBundle | None = None,
        knowledge_facts: Sequence[str] = (),
    ) -> ValidationResult:
        """Check each claim in response_text against the available sources.

        Raises:
            ValidationInconclusive: the response is empty
        """
        if not response_text or not response_text.strip():
            raise ValidationInconclusive("Empty response cannot be validated")

        sources = [
            (source_id, text, _terms(text), is_negated(text))
            for source_id, text in self._sources(bundle, knowledge_facts)
        ]

        fact_checks: list[FactCheck] = []
        contradictions: list[Contradiction] = []
        for claim in extract_claims(response_text):
            claim_terms = _terms(claim)
            claim_negated = is_negated(claim)
            supporting: list[str] = []
            touched = False

            for source_id, text, source_terms, source_negated in sources:
                ratio = overlap_ratio(claim_terms, source_terms)
                if ratio > 0:
                    touched = True
                if ratio < self.overlap_threshold:
                    continue
                if claim_negated == source_negated:
                    supporting.append(source_id)
                else:
                    contradictions.append(
                        Contradiction(fragment_a=claim, fragment_b=text, source_id=source_id)
                    )

            fact_checks.append(
                FactCheck(
                    claim=claim,
                    supported=bool(supporting),
                    source_ids=tuple(supporting),
                    verifiable=touched and len(claim_terms) >= 2,
                )
            )

        confidence = self._confidence(fact_checks, contradictions, response_text)
        logger.debug(
            "validation.complete",
            claims=len(fact_checks),
            contradictions=len(contradictions),
            confidence=confidence,
        )
        return ValidationResult(
            fact_checks=fact_checks, contradictions=contradictions, confidence=confidence
        )

    @staticmethod
    def _confidence(fact_checks, contradictions, response_text: str) -> float:
        if not fact_checks:
            confidence = NO_CLAIMS_CONFIDENCE
        else:
            verifiable = [c for c in fact_checks if c.verifiable]
            if verifiable:
                supported = sum(1 for c in verifiable if c.supported)
                confidence = 0.5 + 0.5 * supported / len(verifiable)
            else:
                confidence = NONE_VERIFIABLE_CONFIDENCE

        confidence -= CONTRADICTION_PENALTY * len(contradictions)
        if hedge_count(response_text) > HEDGING_LIMIT:
            confidence -= HEDGING_PENALTY
        return round(max(0.0, min(1.0, confidence)), 4)
