"""Data models for the conversational memory store."""

from dataclasses import dataclass, field
from datetime import datetime

from shared_types import ErrorKind


class MemoryUnavailable(Exception):
    """The persistence collaborator failed or timed out."""

    kind = ErrorKind.MEMORY_UNAVAILABLE


@dataclass(frozen=True)
class MemoryRecord:
    """One remembered interaction. Never mutated after creation.

    Corrections are new records whose `supersedes` points at the old id;
    deactivation replaces the stored copy with active=False.
    """

    id: str
    owner_id: str
    text: str
    embedding: tuple[float, ...] | None = None
    tags: frozenset[str] = frozenset()
    importance: float = 0.5
    created_at: datetime = field(default_factory=datetime.now)
    expires_at: datetime | None = None
    active: bool = True
    conversation_id: str | None = None
    supersedes: str | None = None
    deactivated_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def is_live(self, now: datetime) -> bool:
        """Active and not expired: eligible for search results."""
        return self.active and not self.is_expired(now)


@dataclass
class RecordFilter:
    """Query filter passed to the persistence collaborator."""

    now: datetime | None = None
    include_inactive: bool = False
    include_expired: bool = False
    tags: frozenset[str] = frozenset()

    def matches(self, record: MemoryRecord) -> bool:
        now = self.now or datetime.now()
        if not self.include_inactive and not record.active:
            return False
        if not self.include_expired and record.is_expired(now):
            return False
        if self.tags and not self.tags <= record.tags:
            return False
        return True


@dataclass(frozen=True)
class ScoredRecord:
    """A search hit: the record plus its 0-1 similarity and how it was scored."""

    record: MemoryRecord
    similarity: float
    method: str  # "vector" | "lexical"
