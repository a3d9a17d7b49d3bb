"""Decides whether a query needs live web results, with a short-lived cache."""

import hashlib
import json
import re
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Sequence

import structlog

from memory.scoring import normalize
from query.classifier import ClassificationResult, has_recency_cue
from shared_types import Intent

logger = structlog.get_logger(source="web_decision")

DEFAULT_DECISION_TTL = 300

VOLATILE_RE = re.compile(
    r"\b(?:price|prices|pricing|cost of|weather|forecast|temperature outside"
    r"|stock|stocks|share price|exchange rate|election|elections|poll|polls"
    r"|final score|match score|game score|score of|standings|traffic)\b",
    re.IGNORECASE,
)

DEFINITIONAL_RE = re.compile(
    r"^\s*(?:what\s+is|what\s+are|what's|define|definition\s+of|meaning\s+of"
    r"|explain|describe|how\s+does|how\s+do|why\s+does|why\s+do)\b",
    re.IGNORECASE,
)

FOLLOW_UP_MAX_WORDS = 6


class Reason:
    TIME_SENSITIVE = "time_sensitive"
    RECENCY_CUE = "recency_cue"
    VOLATILE_FACT = "volatile_fact"
    DEFINITIONAL = "definitional"
    FOLLOW_UP = "follow_up"
    NOT_NEEDED = "not_needed"


@dataclass(frozen=True)
class WebSearchDecision:
    should_search: bool
    reason: str
    cached: bool = False

    def to_dict(self) -> dict:
        return {"should_search": self.should_search, "reason": self.reason, "cached": self.cached}


class DecisionCache:
    """TTL cache of decisions keyed by (owner, normalized query).

    Shared between concurrent requests and the sweeper thread, so every
    access goes through one lock.
    """

    def __init__(self, ttl: float = DEFAULT_DECISION_TTL, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self.clock = clock
        self._entries: dict[str, tuple[WebSearchDecision, float]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def make_key(owner_id: str, query: str) -> str:
        """SHA256 of owner id + normalized query."""
        payload = json.dumps({"owner": owner_id, "query": normalize(query)}, sort_keys=True)
        return hashlib.sha256(payload.encode()).hexdigest()

    def get(self, owner_id: str, query: str) -> WebSearchDecision | None:
        key = self.make_key(owner_id, query)
        now = self.clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            decision, stored_at = entry
            if now - stored_at >= self.ttl:
                del self._entries[key]
                return None
        return decision

    def set(self, owner_id: str, query: str, decision: WebSearchDecision):
        key = self.make_key(owner_id, query)
        with self._lock:
            self._entries[key] = (decision, self.clock())

    def clear_expired(self) -> int:
        """Delete entries older than the TTL. Returns how many were removed."""
        now = self.clock()
        with self._lock:
            stale = [k for k, (_, stored_at) in self._entries.items() if now - stored_at >= self.ttl]
            for key in stale:
                del self._entries[key]
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def _is_follow_up(query: str, owner_history: Sequence[str]) -> bool:
    if not owner_history or len(query.split()) > FOLLOW_UP_MAX_WORDS:
        return False
    return has_recency_cue(owner_history[-1])


class WebSearchDecisionEngine:
    """Ordered rules deciding whether live web results should be fetched."""

    def __init__(self, cache: DecisionCache | None = None):
        self.cache = cache if cache is not None else DecisionCache()

    def decide(
        self,
        classification: ClassificationResult,
        owner_id: str,
        owner_history: Sequence[str] = (),
    ) -> WebSearchDecision:
        """Decide for one query.

        Args:
            classification: Output of query.classify
            owner_id: Cache scope
            owner_history: The owner's recent messages, oldest first

        Returns:
            WebSearchDecision; cached=True when served from the cache
        """
        query = classification.query
        cached = self.cache.get(owner_id, query)
        if cached is not None:
            logger.debug("web_decision.cache_hit", owner_id=owner_id, reason=cached.reason)
            return replace(cached, cached=True)

        decision = self._evaluate(classification, owner_history)
        self.cache.set(owner_id, query, decision)
        logger.debug(
            "web_decision.decided",
            owner_id=owner_id,
            should_search=decision.should_search,
            reason=decision.reason,
        )
        return decision

    @staticmethod
    def _evaluate(
        classification: ClassificationResult, owner_history: Sequence[str]
    ) -> WebSearchDecision:
        query = classification.query
        if classification.intent == Intent.TIME_SENSITIVE:
            return WebSearchDecision(True, Reason.TIME_SENSITIVE)
        if has_recency_cue(query):
            return WebSearchDecision(True, Reason.RECENCY_CUE)
        if VOLATILE_RE.search(query):
            return WebSearchDecision(True, Reason.VOLATILE_FACT)
        if DEFINITIONAL_RE.search(query):
            return WebSearchDecision(False, Reason.DEFINITIONAL)
        if _is_follow_up(query, owner_history):
            return WebSearchDecision(True, Reason.FOLLOW_UP)
        return WebSearchDecision(False, Reason.NOT_NEEDED)
