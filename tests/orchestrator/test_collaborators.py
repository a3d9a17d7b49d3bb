"""Tests for the in-memory conversation history and knowledge base."""

from orchestrator import InMemoryConversationHistory, InMemoryKnowledgeBase


class TestConversationHistory:
    def test_recent_turns_oldest_first(self):
        history = InMemoryConversationHistory()
        for i in range(5):
            history.append("u1", "c1", "user", f"message {i}")

        turns = history.recent_turns("u1", "c1", limit=2)
        assert [t["content"] for t in turns] == ["message 3", "message 4"]
        assert turns[0]["role"] == "user"
        assert "created_at" in turns[0]

    def test_scoped_by_owner_and_conversation(self):
        history = InMemoryConversationHistory()
        history.append("u1", "c1", "user", "one")
        history.append("u1", "c2", "user", "two")
        history.append("u2", "c1", "user", "three")
        assert [t["content"] for t in history.recent_turns("u1", "c1", 10)] == ["one"]

    def test_bounded(self):
        history = InMemoryConversationHistory(max_turns=3)
        for i in range(10):
            history.append("u1", None, "user", str(i))
        assert [t["content"] for t in history.recent_turns("u1", None, 10)] == ["7", "8", "9"]

    def test_zero_limit(self):
        history = InMemoryConversationHistory()
        history.append("u1", None, "user", "hi")
        assert history.recent_turns("u1", None, 0) == []

    def test_unknown_conversation(self):
        assert InMemoryConversationHistory().recent_turns("u1", "nope", 5) == []


class TestKnowledgeBase:
    def test_ranked_lookup(self):
        kb = InMemoryKnowledgeBase(
            [
                "Mitochondria produce energy for the cell.",
                "Photosynthesis happens in chloroplasts.",
                "Chloroplasts contain chlorophyll used in photosynthesis.",
            ]
        )
        facts = kb.lookup("photosynthesis", limit=5)
        assert facts == [
            "Photosynthesis happens in chloroplasts.",
            "Chloroplasts contain chlorophyll used in photosynthesis.",
        ]

    def test_limit_and_threshold(self):
        kb = InMemoryKnowledgeBase(["alpha beta", "alpha gamma", "delta"], min_score=0.3)
        assert kb.lookup("alpha", limit=1) == ["alpha beta"]
        assert kb.lookup("omega", limit=5) == []

    def test_add(self):
        kb = InMemoryKnowledgeBase()
        kb.add("Water boils at 100C at sea level.")
        assert kb.lookup("water boils", limit=3) == ["Water boils at 100C at sea level."]
