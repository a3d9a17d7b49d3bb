"""Context packing data models."""

from dataclasses import dataclass, field
from datetime import datetime

from shared_types import ContextLevel, FragmentSource


@dataclass
class Candidate:
    """A piece of material offered to the optimizer for inclusion."""

    text: str
    weight: float
    source: FragmentSource
    created_at: datetime | None = None
    ref_id: str | None = None


@dataclass(frozen=True)
class Fragment:
    """A candidate as it was packed, possibly cut down to leading sentences."""

    source: FragmentSource
    text: str
    weight: float
    token_count: int
    ref_id: str | None = None
    compressed: bool = False


@dataclass
class ContextBundle:
    """Packed context for one request. tokens_used never exceeds token_budget."""

    level: ContextLevel
    fragments: list[Fragment] = field(default_factory=list)
    token_budget: int = 0
    tokens_used: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.fragments

    def by_source(self, source: FragmentSource) -> list[Fragment]:
        return [f for f in self.fragments if f.source == source]
