"""Token-budgeted context packing at four fidelity levels."""

from datetime import datetime

import structlog

from observability import metrics
from shared_types import ContextLevel, FragmentSource

from .models import Candidate, ContextBundle, Fragment
from .tokens import estimate_tokens, leading_sentences

logger = structlog.get_logger(source="context")

DEFAULT_BUDGETS = {
    ContextLevel.LIGHT: 500,
    ContextLevel.RECENT: 1500,
    ContextLevel.SELECTIVE: 3000,
    ContextLevel.FULL: 8000,
}

_SECTION_TITLES = {
    FragmentSource.MEMORY: "WHAT YOU REMEMBER ABOUT THE USER",
    FragmentSource.CONVERSATION: "RECENT CONVERSATION",
    FragmentSource.KNOWLEDGE: "REFERENCE FACTS",
    FragmentSource.WEB: "WEB RESULTS",
}

_FACT_SOURCES = (FragmentSource.KNOWLEDGE, FragmentSource.WEB)


def _recency(candidate: Candidate) -> float:
    return candidate.created_at.timestamp() if candidate.created_at else float("-inf")


class ContextOptimizer:
    """Selects and packs candidates into a ContextBundle.

    Selection breadth grows with the level: Light keeps the most recent memory
    hits, Recent adds the last conversation turns, Selective adds the
    highest-weighted knowledge and web facts, Full keeps everything. Packing
    is greedy by descending weight and cuts an overflowing fragment only at
    sentence boundaries.
    """

    def __init__(
        self,
        budgets: dict | None = None,
        light_memory_hits: int = 2,
        recent_turns: int = 6,
        selective_facts: int = 5,
    ):
        self.budgets = dict(DEFAULT_BUDGETS)
        for level, budget in (budgets or {}).items():
            self.budgets[ContextLevel(level)] = int(budget)
        self.light_memory_hits = light_memory_hits
        self.recent_turns = recent_turns
        self.selective_facts = selective_facts

    def select(self, level: ContextLevel, candidates: list[Candidate]) -> list[Candidate]:
        """Pick the candidates eligible at this level, before budgeting."""
        candidates = [c for c in candidates if c.text and c.text.strip()]
        if level == ContextLevel.FULL:
            return candidates

        memory = [c for c in candidates if c.source == FragmentSource.MEMORY]
        memory = sorted(memory, key=_recency, reverse=True)[: self.light_memory_hits]
        selected = list(memory)

        if level in (ContextLevel.RECENT, ContextLevel.SELECTIVE):
            turns = [c for c in candidates if c.source == FragmentSource.CONVERSATION]
            if self.recent_turns > 0:
                selected.extend(turns[-self.recent_turns :])

        if level == ContextLevel.SELECTIVE:
            facts = [c for c in candidates if c.source in _FACT_SOURCES]
            facts = sorted(facts, key=lambda c: c.weight, reverse=True)
            selected.extend(facts[: self.selective_facts])

        return selected

    def build(
        self,
        level: ContextLevel,
        candidates: list[Candidate],
        token_budget: int | None = None,
    ) -> ContextBundle:
        """Pack candidates for the given level into at most token_budget tokens.

        Raises:
            ValueError: token_budget is negative
        """
        level = ContextLevel(level)
        budget = self.budgets[level] if token_budget is None else token_budget
        if budget < 0:
            raise ValueError(f"token_budget must be >= 0, got {budget}")

        # sorted() is stable: equal weights keep selection order
        ranked = sorted(self.select(level, candidates), key=lambda c: c.weight, reverse=True)

        fragments: list[Fragment] = []
        used = 0
        dropped = 0
        for candidate in ranked:
            remaining = budget - used
            text = candidate.text.strip()
            tokens = estimate_tokens(text)
            compressed = False

            if tokens > remaining:
                text = leading_sentences(text, remaining)
                if not text:
                    dropped += 1
                    continue
                tokens = estimate_tokens(text)
                compressed = True

            fragments.append(
                Fragment(
                    source=candidate.source,
                    text=text,
                    weight=candidate.weight,
                    token_count=tokens,
                    ref_id=candidate.ref_id,
                    compressed=compressed,
                )
            )
            used += tokens

        metrics.counter(f"context.level.{level}")
        logger.debug(
            "context.built",
            level=str(level),
            budget=budget,
            tokens_used=used,
            fragments=len(fragments),
            dropped=dropped,
        )
        return ContextBundle(level=level, fragments=fragments, token_budget=budget, tokens_used=used)

    @staticmethod
    def render(bundle: ContextBundle) -> str:
        """Prompt block with one titled section per fragment source."""
        sections = []
        for source, title in _SECTION_TITLES.items():
            fragments = bundle.by_source(source)
            if not fragments:
                continue
            lines = "\n".join(f"- {f.text}" for f in fragments)
            sections.append(f"{title}:\n{lines}")
        return "\n\n".join(sections)


def candidates_from_memory(hits) -> list[Candidate]:
    """Turn memory search hits into candidates weighted by similarity and importance."""
    return [
        Candidate(
            text=hit.record.text,
            weight=round(0.7 * hit.similarity + 0.3 * hit.record.importance, 6),
            source=FragmentSource.MEMORY,
            created_at=hit.record.created_at,
            ref_id=hit.record.id,
        )
        for hit in hits
    ]


def candidates_from_turns(turns: list[dict], now: datetime | None = None) -> list[Candidate]:
    """Conversation turns weighted by recency; later turns weigh more."""
    total = len(turns)
    return [
        Candidate(
            text=f"{turn.get('role', 'user')}: {turn.get('content', '')}",
            weight=round(0.3 + 0.3 * (i + 1) / total, 6),
            source=FragmentSource.CONVERSATION,
            created_at=turn.get("created_at") or now,
        )
        for i, turn in enumerate(turns)
        if turn.get("content")
    ]
