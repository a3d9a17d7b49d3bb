"""Conversational memory store with hybrid vector + lexical retrieval."""

import asyncio
import uuid
from dataclasses import replace
from datetime import datetime, timedelta
from functools import partial
from typing import Callable

import structlog

from observability import metrics
from shared_types import SearchMode

from .backends import MemoryBackend, supports_vectors
from .models import MemoryRecord, MemoryUnavailable, RecordFilter, ScoredRecord
from .scoring import lexical_score

logger = structlog.get_logger(source="memory")


def _rank_key(hit: ScoredRecord):
    record = hit.record
    return (-hit.similarity, -record.importance, -record.created_at.timestamp(), record.id)


class MemoryStore:
    """Owner-scoped memory with lazy expiry and append-only corrections.

    Persistence is delegated to a MemoryBackend; embeddings come from the
    provider gateway when one is configured. Backend calls run in worker
    threads so the event loop never blocks on SQLite or Chroma.
    """

    def __init__(
        self,
        backend: MemoryBackend,
        gateway=None,
        default_limit: int = 5,
        default_min_similarity: float = 0.3,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.backend = backend
        self.gateway = gateway
        self.default_limit = default_limit
        self.default_min_similarity = default_min_similarity
        self.clock = clock

    async def _call(self, fn, *args):
        try:
            return await asyncio.to_thread(partial(fn, *args))
        except MemoryUnavailable:
            raise
        except Exception as e:
            metrics.counter("memory.backend_errors")
            raise MemoryUnavailable(f"{type(e).__name__}: {e}") from e

    async def _embed(self, text: str) -> tuple[tuple[float, ...] | None, bool]:
        """Return (vector, fallback). Vector is None when no gateway is configured."""
        if self.gateway is None:
            return None, False
        result = await self.gateway.embed(text)
        return tuple(result.output), result.fallback

    async def store(
        self,
        owner_id: str,
        text: str,
        tags=(),
        importance: float = 0.5,
        expires_at: datetime | None = None,
        ttl: timedelta | None = None,
        conversation_id: str | None = None,
        supersedes: str | None = None,
    ) -> str:
        """Persist a new record and return its id.

        Raises:
            ValueError: text is empty
            MemoryUnavailable: the backend failed
        """
        if not text or not text.strip():
            raise ValueError("Memory text must not be empty")

        now = self.clock()
        if expires_at is None and ttl is not None:
            expires_at = now + ttl

        embedding, fallback = await self._embed(text)
        record = MemoryRecord(
            id=uuid.uuid4().hex[:16],
            owner_id=owner_id,
            text=text.strip(),
            embedding=embedding,
            tags=frozenset(tags),
            importance=max(0.0, min(1.0, float(importance))),
            created_at=now,
            expires_at=expires_at,
            conversation_id=conversation_id,
            supersedes=supersedes,
        )
        await self._call(self.backend.put, record)
        metrics.counter("memory.stored")
        logger.info(
            "memory.stored",
            record_id=record.id,
            owner_id=owner_id,
            tags=sorted(record.tags),
            fallback_embedding=fallback,
        )
        return record.id

    async def get(self, record_id: str) -> MemoryRecord | None:
        return await self._call(self.backend.get, record_id)

    async def correct(self, record_id: str, new_text: str) -> str:
        """Replace a record's content with a new record that supersedes it.

        The old record is deactivated, never edited.

        Raises:
            KeyError: record_id does not exist
        """
        old = await self.get(record_id)
        if old is None:
            raise KeyError(record_id)

        new_id = await self.store(
            old.owner_id,
            new_text,
            tags=old.tags,
            importance=old.importance,
            expires_at=old.expires_at,
            conversation_id=old.conversation_id,
            supersedes=old.id,
        )
        await self.deactivate(record_id)
        logger.info("memory.corrected", old_id=record_id, new_id=new_id)
        return new_id

    async def deactivate(self, record_id: str) -> bool:
        record = await self.get(record_id)
        if record is None:
            return False
        if not record.active:
            return True
        await self._call(
            self.backend.put, replace(record, active=False, deactivated_at=self.clock())
        )
        logger.info("memory.deactivated", record_id=record_id)
        return True

    async def search(
        self,
        owner_id: str,
        query: str,
        limit: int | None = None,
        min_similarity: float | None = None,
        mode: SearchMode = SearchMode.HYBRID,
    ) -> list[ScoredRecord]:
        """Rank the owner's live records against query.

        Vector hits come from the backend's nearest_neighbors primitive.
        Lexical scoring supplements them when there are fewer than `limit`
        vector hits, and replaces them entirely when the query could not be
        embedded or the backend has no vector search. Results are merged by
        id keeping the higher score and sorted deterministically.

        Raises:
            MemoryUnavailable: the backend failed to list candidates
        """
        limit = self.default_limit if limit is None else limit
        min_similarity = self.default_min_similarity if min_similarity is None else min_similarity
        if limit <= 0 or not query or not query.strip():
            return []

        now = self.clock()
        candidates = await self._call(
            self.backend.query_by_owner, owner_id, RecordFilter(now=now)
        )
        live = {r.id: r for r in candidates if r.is_live(now)}
        if not live:
            return []

        hits: dict[str, ScoredRecord] = {}
        query_vector = None
        vector_ok = False

        use_vectors = (
            mode != SearchMode.LEXICAL
            and self.gateway is not None
            and supports_vectors(self.backend)
        )
        if use_vectors:
            vector, fallback = await self._embed(query)
            if fallback:
                logger.info("memory.query_embedding_fallback", owner_id=owner_id)
            else:
                query_vector = vector
                vector_ok = await self._vector_pass(
                    owner_id, query_vector, limit, min_similarity, live, hits
                )

        run_lexical = (
            mode == SearchMode.LEXICAL
            or not vector_ok
            or (mode == SearchMode.HYBRID and len(hits) < limit)
        )
        if run_lexical:
            if vector_ok:
                pool = [
                    r
                    for r in live.values()
                    if r.embedding is None or len(r.embedding) != len(query_vector)
                ]
            else:
                pool = list(live.values())
            self._lexical_pass(query, pool, min_similarity, hits)

        ranked = sorted(hits.values(), key=_rank_key)[:limit]
        metrics.counter("memory.searches")
        logger.debug(
            "memory.search_complete",
            owner_id=owner_id,
            mode=str(mode),
            vector=vector_ok,
            candidates=len(live),
            results=len(ranked),
        )
        return ranked

    async def _vector_pass(self, owner_id, vector, limit, min_similarity, live, hits) -> bool:
        try:
            neighbors = await asyncio.to_thread(
                self.backend.nearest_neighbors, owner_id, list(vector), max(limit * 3, limit)
            )
        except Exception as e:
            metrics.counter("memory.ann_failures")
            logger.warning("memory.ann_failed", owner_id=owner_id, error=str(e))
            return False

        for record, similarity in neighbors:
            current = live.get(record.id)
            if current is None or current.embedding is None:
                continue
            if len(current.embedding) != len(vector):
                continue
            if similarity < min_similarity:
                continue
            _merge(hits, ScoredRecord(current, round(float(similarity), 6), "vector"))
        return True

    @staticmethod
    def _lexical_pass(query, pool, min_similarity, hits):
        for record in pool:
            score = lexical_score(query, record.text)
            if score <= 0 or score < min_similarity:
                continue
            _merge(hits, ScoredRecord(record, score, "lexical"))

    def sweep(self, grace_period: timedelta, now: datetime | None = None) -> int:
        """Physically delete records expired or inactive for longer than grace_period.

        Synchronous: runs on the scheduler thread against a snapshot.
        """
        now = now or self.clock()
        cutoff = now - grace_period
        removed = 0
        for record in self.backend.list_all():
            expired_long_ago = record.expires_at is not None and record.expires_at <= cutoff
            inactive_long_ago = (
                not record.active
                and (record.deactivated_at or record.created_at) <= cutoff
            )
            if expired_long_ago or inactive_long_ago:
                if self.backend.delete(record.id):
                    removed += 1
        if removed:
            metrics.counter("memory.swept", removed)
        logger.info("memory.sweep_complete", removed=removed)
        return removed


def _merge(hits: dict[str, ScoredRecord], hit: ScoredRecord):
    existing = hits.get(hit.record.id)
    if existing is None or hit.similarity > existing.similarity:
        hits[hit.record.id] = hit
