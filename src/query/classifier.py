"""Rule-based query classification.

Rules are an ordered list of (patterns, intent) pairs evaluated top to
bottom; the first rule with any matching cue decides the intent. The
classifier is a pure function of the text.
"""

import re
from dataclasses import dataclass

from memory.scoring import content_terms
from shared_types import Intent


@dataclass(frozen=True)
class Rule:
    intent: Intent
    patterns: tuple[re.Pattern, ...]
    base_confidence: float

    def cues(self, text: str) -> list[str]:
        found = []
        for pattern in self.patterns:
            found.extend(m.group(0).lower() for m in pattern.finditer(text))
        return found


def _compile(*patterns: str) -> tuple[re.Pattern, ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


PERSONAL_PATTERNS = _compile(
    r"\bmy\b",
    r"\bmine\b",
    r"\bmyself\b",
    r"\bour\b",
    r"\bi(?:'m| am| was| have|'ve| told)\b",
    r"\babout me\b",
    r"\bremember\b",
    r"\bhow am i\b",
)

RECENCY_PATTERNS = _compile(
    r"\b(?:latest|current|currently|today|tonight|tomorrow|yesterday|now|recent|recently|newest)\b",
    r"\bthis (?:week|month|year|season)\b",
    r"\b(?:breaking|news|update|updates)\b",
    r"\b(?:19|20)\d{2}\b",
)

TEACHING_PATTERNS = _compile(
    r"\b(?:explain|teach|learn|understand|study|homework|lesson|solve|derive|prove)\b",
    r"\bhow (?:does|do|did|can)\b",
    r"\bwhy (?:does|do|is|are)\b",
    r"\bwhat (?:is|are)\b",
    r"\b(?:define|definition|meaning|example|concept|theory|formula|equation)\b",
)

CONTINUATION_PATTERNS = _compile(
    r"\blast time\b",
    r"\bcontinue\b",
    r"\bpreviously\b",
    r"\bearlier\b",
    r"\bas we discussed\b",
    r"\bwhere we left off\b",
)

# Temporal precedes teaching: "what is the latest ..." carries both cues.
RULES: tuple[Rule, ...] = (
    Rule(Intent.PERSONAL, PERSONAL_PATTERNS, 0.8),
    Rule(Intent.TIME_SENSITIVE, RECENCY_PATTERNS, 0.8),
    Rule(Intent.TEACHING, TEACHING_PATTERNS, 0.75),
)

GENERAL_CONFIDENCE = 0.5
MAX_CONFIDENCE = 0.95


@dataclass(frozen=True)
class ClassificationResult:
    intent: Intent
    needs_memory: bool
    needs_web_search: bool
    confidence: float
    query: str
    cues: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "intent": str(self.intent),
            "needs_memory": self.needs_memory,
            "needs_web_search": self.needs_web_search,
            "confidence": self.confidence,
            "cues": list(self.cues),
        }


def has_recency_cue(text: str) -> bool:
    return any(p.search(text) for p in RECENCY_PATTERNS)


def has_continuation_cue(text: str) -> bool:
    return any(p.search(text) for p in CONTINUATION_PATTERNS)


def classify(text: str) -> ClassificationResult:
    """Classify sanitized query text."""
    intent = Intent.GENERAL
    confidence = GENERAL_CONFIDENCE
    cues: list[str] = []

    for rule in RULES:
        matched = rule.cues(text)
        if matched:
            intent = rule.intent
            confidence = min(MAX_CONFIDENCE, rule.base_confidence + 0.05 * (len(matched) - 1))
            cues = matched
            break

    continuation = has_continuation_cue(text)
    needs_memory = intent in (Intent.PERSONAL, Intent.TEACHING) or continuation
    needs_web_search = intent == Intent.TIME_SENSITIVE or has_recency_cue(text)

    return ClassificationResult(
        intent=intent,
        needs_memory=needs_memory,
        needs_web_search=needs_web_search,
        confidence=round(confidence, 4),
        query=text,
        cues=tuple(cues),
    )


def _topic(query: str, cues=(), max_terms: int = 4) -> str:
    skip = {"my", "our", "mine"}
    for cue in cues:
        skip.update(cue.split())
    terms = [t for t in content_terms(query) if t not in skip]
    return " ".join(terms[:max_terms]) or "this"


def suggest_follow_ups(classification: ClassificationResult, limit: int = 3) -> list[str]:
    """Follow-up prompts the user might send next, by intent."""
    topic = _topic(classification.query, classification.cues)
    if classification.intent == Intent.TEACHING:
        suggestions = [
            f"Can you give me an example of {topic}?",
            f"Can you quiz me on {topic}?",
            f"What should I learn after {topic}?",
        ]
    elif classification.intent == Intent.PERSONAL:
        suggestions = [
            "What else should you remember about me?",
            f"How does {topic} connect to my goals?",
            "Can you summarize what you know about me?",
        ]
    elif classification.intent == Intent.TIME_SENSITIVE:
        suggestions = [
            f"What changed recently about {topic}?",
            f"Where can I follow updates on {topic}?",
            f"How does {topic} compare to last year?",
        ]
    else:
        suggestions = [
            f"Can you explain {topic} in more detail?",
            f"What are common misconceptions about {topic}?",
            f"Can you give me a practice question on {topic}?",
        ]
    return suggestions[:limit]
