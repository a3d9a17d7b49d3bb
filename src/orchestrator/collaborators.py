"""Conversation history and knowledge base collaborators."""

import threading
from abc import ABC, abstractmethod
from collections import defaultdict, deque
from datetime import datetime

from memory.scoring import lexical_score


class ConversationHistory(ABC):
    """Recent turns of an owner's conversation."""

    @abstractmethod
    def recent_turns(
        self, owner_id: str, conversation_id: str | None, limit: int
    ) -> list[dict]:
        """Last `limit` turns, oldest first, as {"role", "content", "created_at"} dicts."""
        ...

    @abstractmethod
    def append(self, owner_id: str, conversation_id: str | None, role: str, content: str) -> None:
        ...


class InMemoryConversationHistory(ConversationHistory):
    """Bounded per-conversation turn buffers."""

    def __init__(self, max_turns: int = 50):
        self.max_turns = max_turns
        self._turns: dict[tuple, deque] = defaultdict(lambda: deque(maxlen=self.max_turns))
        self._lock = threading.Lock()

    def recent_turns(self, owner_id, conversation_id, limit):
        if limit <= 0:
            return []
        with self._lock:
            turns = list(self._turns.get((owner_id, conversation_id), ()))
        return turns[-limit:]

    def append(self, owner_id, conversation_id, role, content):
        with self._lock:
            self._turns[(owner_id, conversation_id)].append(
                {"role": role, "content": content, "created_at": datetime.now()}
            )


class KnowledgeBase(ABC):
    """Reference facts looked up by query."""

    @abstractmethod
    def lookup(self, query: str, limit: int) -> list[str]:
        ...


class InMemoryKnowledgeBase(KnowledgeBase):
    """Static fact list ranked by lexical overlap with the query."""

    def __init__(self, facts: list[str] | None = None, min_score: float = 0.3):
        self.facts = list(facts or [])
        self.min_score = min_score

    def add(self, fact: str):
        self.facts.append(fact)

    def lookup(self, query: str, limit: int) -> list[str]:
        scored = [(lexical_score(query, fact), i, fact) for i, fact in enumerate(self.facts)]
        scored = [s for s in scored if s[0] >= self.min_score and s[0] > 0]
        scored.sort(key=lambda s: (-s[0], s[1]))
        return [fact for _, _, fact in scored[:limit]]
