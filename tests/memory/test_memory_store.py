"""Tests for MemoryStore — writes, corrections, lazy expiry, hybrid search, sweep."""

import sqlite3
from datetime import timedelta

import pytest

from conftest import FakeEmbedder
from llm import LLMError, ProviderGateway
from memory import InMemoryBackend, MemoryRecord, MemoryStore, MemoryUnavailable
from observability import metrics
from shared_types import SearchMode


class TestStore:
    @pytest.mark.asyncio
    async def test_store_and_get(self, memory_store, dt_clock):
        record_id = await memory_store.store(
            "u1", "  I work as a data engineer  ", tags=["career"], importance=0.8
        )
        record = await memory_store.get(record_id)
        assert record.text == "I work as a data engineer"
        assert record.owner_id == "u1"
        assert record.tags == frozenset({"career"})
        assert record.importance == 0.8
        assert record.created_at == dt_clock.now
        assert len(record.embedding) == 32
        assert record.active

    @pytest.mark.asyncio
    async def test_empty_text_rejected(self, memory_store):
        with pytest.raises(ValueError):
            await memory_store.store("u1", "   ")

    @pytest.mark.asyncio
    async def test_importance_clamped(self, lexical_store):
        high = await lexical_store.store("u1", "a", importance=1.7)
        low = await lexical_store.store("u1", "b", importance=-2)
        assert (await lexical_store.get(high)).importance == 1.0
        assert (await lexical_store.get(low)).importance == 0.0

    @pytest.mark.asyncio
    async def test_ttl_sets_expiry(self, lexical_store, dt_clock):
        record_id = await lexical_store.store("u1", "temporary note", ttl=timedelta(hours=2))
        record = await lexical_store.get(record_id)
        assert record.expires_at == dt_clock.now + timedelta(hours=2)

    @pytest.mark.asyncio
    async def test_no_gateway_means_no_embedding(self, lexical_store):
        record_id = await lexical_store.store("u1", "plain text")
        assert (await lexical_store.get(record_id)).embedding is None

    @pytest.mark.asyncio
    async def test_failed_embedding_still_stored(self, backend, health, dt_clock):
        gw = ProviderGateway(
            embedding_providers=[FakeEmbedder(error=LLMError("down"))], health=health
        )
        store = MemoryStore(backend, gateway=gw, clock=dt_clock)
        record_id = await store.store("u1", "fallback vector please")
        record = await store.get(record_id)
        assert record is not None
        assert len(record.embedding) == 128


class TestCorrections:
    @pytest.mark.asyncio
    async def test_correct_appends_and_deactivates(self, lexical_store):
        old_id = await lexical_store.store("u1", "I live in Berlin", tags=["home"], importance=0.9)
        new_id = await lexical_store.correct(old_id, "I live in Lisbon")

        old = await lexical_store.get(old_id)
        new = await lexical_store.get(new_id)
        assert old.text == "I live in Berlin"
        assert old.active is False
        assert new.supersedes == old_id
        assert new.tags == frozenset({"home"})
        assert new.importance == 0.9

        hits = await lexical_store.search("u1", "where do I live", min_similarity=0.1)
        assert [h.record.id for h in hits] == [new_id]

    @pytest.mark.asyncio
    async def test_correct_missing_raises(self, lexical_store):
        with pytest.raises(KeyError):
            await lexical_store.correct("missing", "text")

    @pytest.mark.asyncio
    async def test_deactivate(self, lexical_store, dt_clock):
        record_id = await lexical_store.store("u1", "I drink coffee")
        assert await lexical_store.deactivate(record_id) is True
        record = await lexical_store.get(record_id)
        assert record.active is False
        assert record.deactivated_at == dt_clock.now
        assert await lexical_store.search("u1", "coffee") == []

    @pytest.mark.asyncio
    async def test_deactivate_missing(self, lexical_store):
        assert await lexical_store.deactivate("missing") is False


class TestLazyExpiry:
    @pytest.mark.asyncio
    async def test_expired_records_hidden_but_kept(self, lexical_store, dt_clock):
        record_id = await lexical_store.store("u1", "meeting at noon", ttl=timedelta(hours=1))
        assert len(await lexical_store.search("u1", "meeting")) == 1

        dt_clock.advance(hours=2)
        assert await lexical_store.search("u1", "meeting") == []
        assert await lexical_store.get(record_id) is not None


class TestSearch:
    @pytest.mark.asyncio
    async def test_name_recall_without_embeddings(self, lexical_store):
        record_id = await lexical_store.store("u1", "My name is Kunal")
        hits = await lexical_store.search(
            "u1", "Do you know my name?", min_similarity=0.1, mode=SearchMode.HYBRID
        )
        assert hits[0].record.id == record_id
        assert hits[0].similarity >= 0.5
        assert hits[0].method == "lexical"

    @pytest.mark.asyncio
    async def test_name_recall_when_embeddings_fail(self, backend, health, dt_clock):
        gw = ProviderGateway(
            embedding_providers=[FakeEmbedder(error=LLMError("down"))], health=health
        )
        store = MemoryStore(backend, gateway=gw, clock=dt_clock)
        record_id = await store.store("u1", "My name is Kunal")
        hits = await store.search("u1", "Do you know my name?", min_similarity=0.1)
        assert hits[0].record.id == record_id
        assert hits[0].similarity >= 0.5

    @pytest.mark.asyncio
    async def test_unembedded_record_found_when_query_embedding_fails(
        self, backend, health, dt_clock
    ):
        embedder = FakeEmbedder(fail_on=lambda text: text == "favourite editor")
        gw = ProviderGateway(embedding_providers=[embedder], health=health)
        store = MemoryStore(backend, gateway=gw, clock=dt_clock)
        backend.put(
            MemoryRecord(
                id="plain",
                owner_id="u1",
                text="My favourite editor is vim",
                created_at=dt_clock.now,
            )
        )

        hits = await store.search("u1", "favourite editor", mode=SearchMode.HYBRID)
        assert [h.record.id for h in hits] == ["plain"]
        assert hits[0].similarity == 1.0

    @pytest.mark.asyncio
    async def test_vector_hit_for_identical_text(self, memory_store):
        record_id = await memory_store.store("u1", "I enjoy hiking in the mountains")
        hits = await memory_store.search(
            "u1", "I enjoy hiking in the mountains", mode=SearchMode.VECTOR
        )
        assert hits[0].record.id == record_id
        assert hits[0].method == "vector"
        assert hits[0].similarity == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_hybrid_supplements_with_unembedded_records(self, memory_store, backend, dt_clock):
        embedded = await memory_store.store("u1", "weekly running plan")
        backend.put(
            MemoryRecord(
                id="legacy", owner_id="u1", text="my weekly running plan notes",
                created_at=dt_clock.now,
            )
        )
        hits = await memory_store.search("u1", "weekly running plan", mode=SearchMode.HYBRID)
        methods = {h.record.id: h.method for h in hits}
        assert methods[embedded] == "vector"
        assert methods["legacy"] == "lexical"

    @pytest.mark.asyncio
    async def test_hybrid_is_idempotent(self, memory_store):
        for text in [
            "I prefer Python for scripting",
            "My team uses Go for services",
            "Python packaging is confusing",
            "I started learning Rust",
        ]:
            await memory_store.store("u1", text)

        first = await memory_store.search("u1", "python scripting", min_similarity=0.0)
        second = await memory_store.search("u1", "python scripting", min_similarity=0.0)
        assert [(h.record.id, h.similarity) for h in first] == [
            (h.record.id, h.similarity) for h in second
        ]

    @pytest.mark.asyncio
    async def test_owner_scoping(self, lexical_store):
        await lexical_store.store("u1", "I like jazz")
        await lexical_store.store("u2", "I like jazz too")
        hits = await lexical_store.search("u2", "jazz")
        assert len(hits) == 1
        assert hits[0].record.owner_id == "u2"

    @pytest.mark.asyncio
    async def test_tie_break_importance_then_recency(self, lexical_store, dt_clock):
        low = await lexical_store.store("u1", "likes tea", importance=0.2)
        high = await lexical_store.store("u1", "likes tea", importance=0.9)
        dt_clock.advance(minutes=1)
        newer_low = await lexical_store.store("u1", "likes tea", importance=0.2)

        hits = await lexical_store.search("u1", "tea")
        assert [h.record.id for h in hits] == [high, newer_low, low]

    @pytest.mark.asyncio
    async def test_limit_and_threshold(self, lexical_store):
        for i in range(6):
            await lexical_store.store("u1", f"python note {i}")
        await lexical_store.store("u1", "unrelated gardening tips")

        assert len(await lexical_store.search("u1", "python", limit=3)) == 3
        assert await lexical_store.search("u1", "python", limit=0) == []
        assert await lexical_store.search("u1", "gardening python", min_similarity=0.9) == []

    @pytest.mark.asyncio
    async def test_empty_query(self, lexical_store):
        await lexical_store.store("u1", "anything")
        assert await lexical_store.search("u1", "   ") == []

    @pytest.mark.asyncio
    async def test_backend_without_ann_uses_lexical(self, gateway, dt_clock):
        class PlainBackend(InMemoryBackend):
            nearest_neighbors = None

        store = MemoryStore(PlainBackend(), gateway=gateway, clock=dt_clock)
        await store.store("u1", "I play the cello")
        hits = await store.search("u1", "cello", mode=SearchMode.VECTOR)
        assert hits[0].method == "lexical"

    @pytest.mark.asyncio
    async def test_ann_failure_falls_back_to_lexical(self, gateway, dt_clock):
        class BrokenAnn(InMemoryBackend):
            def nearest_neighbors(self, owner_id, vector, k):
                raise RuntimeError("index corrupted")

        store = MemoryStore(BrokenAnn(), gateway=gateway, clock=dt_clock)
        await store.store("u1", "I play the cello")
        hits = await store.search("u1", "cello")
        assert hits[0].method == "lexical"
        assert metrics.get("memory.ann_failures") == 1


class TestBackendFailures:
    @pytest.mark.asyncio
    async def test_backend_error_becomes_memory_unavailable(self, dt_clock):
        class LockedBackend(InMemoryBackend):
            def put(self, record):
                raise sqlite3.OperationalError("database is locked")

            def query_by_owner(self, owner_id, record_filter):
                raise sqlite3.OperationalError("database is locked")

        store = MemoryStore(LockedBackend(), clock=dt_clock)
        with pytest.raises(MemoryUnavailable):
            await store.store("u1", "text")
        with pytest.raises(MemoryUnavailable):
            await store.search("u1", "text")
        assert metrics.get("memory.backend_errors") == 2


class TestSweep:
    @pytest.mark.asyncio
    async def test_sweep_respects_grace_period(self, lexical_store, backend, dt_clock):
        expired_long_ago = await lexical_store.store("u1", "old", ttl=timedelta(hours=1))
        live = await lexical_store.store("u1", "keep me")
        dt_clock.advance(hours=30)
        expired_recently = await lexical_store.store("u1", "recent", ttl=timedelta(minutes=5))
        dt_clock.advance(hours=1)

        removed = lexical_store.sweep(grace_period=timedelta(hours=24))

        assert removed == 1
        assert backend.get(expired_long_ago) is None
        assert backend.get(expired_recently) is not None
        assert backend.get(live) is not None

    @pytest.mark.asyncio
    async def test_sweep_removes_long_inactive(self, lexical_store, backend, dt_clock):
        record_id = await lexical_store.store("u1", "superseded")
        await lexical_store.deactivate(record_id)

        assert lexical_store.sweep(grace_period=timedelta(hours=1)) == 0
        dt_clock.advance(hours=2)
        assert lexical_store.sweep(grace_period=timedelta(hours=1)) == 1
        assert backend.get(record_id) is None
        assert metrics.get("memory.swept") == 1
