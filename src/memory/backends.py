"""Persistence collaborators for the memory store.

The store treats persistence as opaque: put / get / query_by_owner / delete /
list_all, plus an optional nearest_neighbors primitive. A backend without
nearest_neighbors forces lexical-only retrieval.
"""

import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path

import structlog

from db import wal_connect

from .models import MemoryRecord, RecordFilter
from .scoring import DimensionMismatch, cosine_similarity

logger = structlog.get_logger()


class MemoryBackend(ABC):
    """Abstract persistence interface."""

    @abstractmethod
    def put(self, record: MemoryRecord) -> None:
        """Insert or replace a record by id."""
        ...

    @abstractmethod
    def get(self, record_id: str) -> MemoryRecord | None:
        ...

    @abstractmethod
    def query_by_owner(self, owner_id: str, record_filter: RecordFilter) -> list[MemoryRecord]:
        ...

    @abstractmethod
    def delete(self, record_id: str) -> bool:
        ...

    @abstractmethod
    def list_all(self) -> list[MemoryRecord]:
        """Snapshot of every stored record, including inactive and expired."""
        ...


def supports_vectors(backend: MemoryBackend) -> bool:
    return callable(getattr(backend, "nearest_neighbors", None))


def brute_force_neighbors(
    records: list[MemoryRecord], vector: list[float], k: int
) -> list[tuple[MemoryRecord, float]]:
    """Exact cosine ranking over records with same-dimension embeddings."""
    scored = []
    for record in records:
        if record.embedding is None:
            continue
        try:
            scored.append((record, cosine_similarity(vector, record.embedding)))
        except DimensionMismatch:
            continue
    scored.sort(key=lambda pair: (-pair[1], pair[0].id))
    return scored[:k]


class InMemoryBackend(MemoryBackend):
    """Dict-backed store with a brute-force nearest-neighbor primitive."""

    def __init__(self):
        self._records: dict[str, MemoryRecord] = {}
        self._lock = threading.Lock()

    def put(self, record: MemoryRecord) -> None:
        with self._lock:
            self._records[record.id] = record

    def get(self, record_id: str) -> MemoryRecord | None:
        with self._lock:
            return self._records.get(record_id)

    def query_by_owner(self, owner_id: str, record_filter: RecordFilter) -> list[MemoryRecord]:
        with self._lock:
            records = [r for r in self._records.values() if r.owner_id == owner_id]
        return [r for r in records if record_filter.matches(r)]

    def delete(self, record_id: str) -> bool:
        with self._lock:
            return self._records.pop(record_id, None) is not None

    def list_all(self) -> list[MemoryRecord]:
        with self._lock:
            return list(self._records.values())

    def nearest_neighbors(
        self, owner_id: str, vector: list[float], k: int
    ) -> list[tuple[MemoryRecord, float]]:
        candidates = self.query_by_owner(owner_id, RecordFilter(include_expired=True))
        return brute_force_neighbors(candidates, vector, k)


class SQLiteBackend(MemoryBackend):
    """SQLite persistence with optional ChromaDB approximate search."""

    def __init__(self, db_path: str | Path, chroma_dir: str | Path | None = None):
        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._chroma_dir = Path(chroma_dir).expanduser() if chroma_dir else None
        self._collection = None
        self._init_db()

    def _init_db(self):
        with wal_connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS memory_records (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    text TEXT NOT NULL,
                    embedding TEXT,
                    tags TEXT NOT NULL DEFAULT '[]',
                    importance REAL NOT NULL DEFAULT 0.5,
                    created_at TIMESTAMP NOT NULL,
                    expires_at TIMESTAMP,
                    active INTEGER NOT NULL DEFAULT 1,
                    conversation_id TEXT,
                    supersedes TEXT,
                    deactivated_at TIMESTAMP
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_memory_owner
                ON memory_records(owner_id, active)
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_memory_expires
                ON memory_records(expires_at)
            """)

    @property
    def _chroma(self):
        """Lazy-init ChromaDB collection."""
        if self._collection is None and self._chroma_dir:
            try:
                import chromadb
                from chromadb.config import Settings

                self._chroma_dir.mkdir(parents=True, exist_ok=True)
                client = chromadb.PersistentClient(
                    path=str(self._chroma_dir),
                    settings=Settings(anonymized_telemetry=False),
                )
                self._collection = client.get_or_create_collection(
                    name="memory_records",
                    metadata={"hnsw:space": "cosine"},
                )
            except Exception as e:
                logger.warning("chroma_init_failed", error=str(e))
        return self._collection

    def put(self, record: MemoryRecord) -> None:
        with wal_connect(self.db_path) as conn:
            conn.execute(
                """INSERT OR REPLACE INTO memory_records
                   (id, owner_id, text, embedding, tags, importance, created_at, expires_at,
                    active, conversation_id, supersedes, deactivated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    record.id,
                    record.owner_id,
                    record.text,
                    json.dumps(list(record.embedding)) if record.embedding is not None else None,
                    json.dumps(sorted(record.tags)),
                    record.importance,
                    record.created_at.isoformat(),
                    record.expires_at.isoformat() if record.expires_at else None,
                    int(record.active),
                    record.conversation_id,
                    record.supersedes,
                    record.deactivated_at.isoformat() if record.deactivated_at else None,
                ),
            )

        coll = self._chroma
        if coll is None:
            return
        try:
            if record.active and record.embedding is not None:
                coll.upsert(
                    ids=[record.id],
                    embeddings=[list(record.embedding)],
                    metadatas=[{"owner_id": record.owner_id}],
                )
            else:
                coll.delete(ids=[record.id])
        except Exception as e:
            # SQLite stays authoritative; brute-force search covers the gap.
            logger.warning("chroma_upsert_failed", record_id=record.id, error=str(e))

    def get(self, record_id: str) -> MemoryRecord | None:
        with wal_connect(self.db_path, row_factory=True) as conn:
            row = conn.execute(
                "SELECT * FROM memory_records WHERE id = ?", (record_id,)
            ).fetchone()
        return self._row_to_record(row) if row else None

    def query_by_owner(self, owner_id: str, record_filter: RecordFilter) -> list[MemoryRecord]:
        sql = "SELECT * FROM memory_records WHERE owner_id = ?"
        params: list = [owner_id]
        if not record_filter.include_inactive:
            sql += " AND active = 1"
        sql += " ORDER BY created_at DESC"

        with wal_connect(self.db_path, row_factory=True) as conn:
            rows = conn.execute(sql, params).fetchall()
        records = [self._row_to_record(r) for r in rows]
        return [r for r in records if record_filter.matches(r)]

    def delete(self, record_id: str) -> bool:
        with wal_connect(self.db_path) as conn:
            cursor = conn.execute("DELETE FROM memory_records WHERE id = ?", (record_id,))
            deleted = cursor.rowcount > 0

        coll = self._chroma
        if coll is not None:
            try:
                coll.delete(ids=[record_id])
            except Exception as e:
                logger.warning("chroma_delete_failed", record_id=record_id, error=str(e))
        return deleted

    def list_all(self) -> list[MemoryRecord]:
        with wal_connect(self.db_path, row_factory=True) as conn:
            rows = conn.execute("SELECT * FROM memory_records").fetchall()
        return [self._row_to_record(r) for r in rows]

    def nearest_neighbors(
        self, owner_id: str, vector: list[float], k: int
    ) -> list[tuple[MemoryRecord, float]]:
        coll = self._chroma
        if coll is not None:
            try:
                return self._chroma_neighbors(coll, owner_id, vector, k)
            except Exception as e:
                logger.warning("chroma_search_failed", error=str(e))

        candidates = self.query_by_owner(owner_id, RecordFilter(include_expired=True))
        return brute_force_neighbors(candidates, vector, k)

    def _chroma_neighbors(self, coll, owner_id: str, vector: list[float], k: int):
        results = coll.query(
            query_embeddings=[vector],
            n_results=k,
            where={"owner_id": owner_id},
            include=["distances"],
        )
        hits = []
        if results["ids"] and results["ids"][0]:
            for i, record_id in enumerate(results["ids"][0]):
                record = self.get(record_id)
                if record is None or record.embedding is None:
                    continue
                if len(record.embedding) != len(vector):
                    continue
                similarity = max(0.0, min(1.0, 1 - results["distances"][0][i]))
                hits.append((record, similarity))
        return hits

    def _row_to_record(self, row: sqlite3.Row) -> MemoryRecord:
        embedding = json.loads(row["embedding"]) if row["embedding"] else None
        return MemoryRecord(
            id=row["id"],
            owner_id=row["owner_id"],
            text=row["text"],
            embedding=tuple(embedding) if embedding is not None else None,
            tags=frozenset(json.loads(row["tags"] or "[]")),
            importance=row["importance"],
            created_at=datetime.fromisoformat(row["created_at"]),
            expires_at=datetime.fromisoformat(row["expires_at"]) if row["expires_at"] else None,
            active=bool(row["active"]),
            conversation_id=row["conversation_id"],
            supersedes=row["supersedes"],
            deactivated_at=(
                datetime.fromisoformat(row["deactivated_at"]) if row["deactivated_at"] else None
            ),
        )
