"""Short-term memory storage: in-memory and SQLite backends."""

from __future__ import annotations

import json
import sqlite3
import threading
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol

from ema.config import MemoryConfig
from ema.memory.models import MemoryFilter, ShortTermMemory


class ShortTermMemoryStore(Protocol):
    """Storage for short-term memories."""

    def append(self, memory: ShortTermMemory) -> ShortTermMemory: ...

    def list(self, filter: MemoryFilter | None = None) -> list[ShortTermMemory]: ...

    def delete(self, memory_id: int) -> bool: ...

    def clear(self) -> None: ...

    def restore(self, memories: Iterable[ShortTermMemory]) -> None: ...


class InMemoryShortTermMemoryStore:
    """Process-local store, mainly for development and tests."""

    def __init__(self) -> None:
        self._memories: dict[int, ShortTermMemory] = {}
        self._next_id = 1

    def append(self, memory: ShortTermMemory) -> ShortTermMemory:
        """Store a copy of ``memory`` under the next id and return it."""
        stored = memory.model_copy(update={"id": self._next_id})
        self._memories[self._next_id] = stored
        self._next_id += 1
        return stored

    def list(self, filter: MemoryFilter | None = None) -> list[ShortTermMemory]:
        filter = filter or MemoryFilter()
        return [m for m in self._memories.values() if filter.matches(m)]

    def delete(self, memory_id: int) -> bool:
        """Delete a memory. Returns True only if it existed."""
        return self._memories.pop(memory_id, None) is not None

    def clear(self) -> None:
        self._memories.clear()
        self._next_id = 1

    def restore(self, memories: Iterable[ShortTermMemory]) -> None:
        """Replace the contents, keeping the ids of ``memories``."""
        self.clear()
        for memory in memories:
            memory_id = memory.id if memory.id is not None else self._next_id
            self._memories[memory_id] = memory.model_copy(update={"id": memory_id})
            self._next_id = max(self._next_id, memory_id + 1)


class SQLiteShortTermMemoryStore:
    """SQLite-backed store.

    Structure:
        short_term_memories(id, kind, actor_id, os, statement, created_at, messages JSON)
    """

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_db()

    def _init_db(self) -> None:
        with self._lock, self._conn:
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS short_term_memories (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    kind TEXT NOT NULL,
                    actor_id INTEGER NOT NULL,
                    os TEXT NOT NULL,
                    statement TEXT NOT NULL,
                    created_at INTEGER NOT NULL,
                    messages JSON NOT NULL
                )
            """)
            self._conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_stm_actor ON short_term_memories(actor_id, created_at)"
            )

    @staticmethod
    def _row_to_memory(row: sqlite3.Row) -> ShortTermMemory:
        return ShortTermMemory(
            id=row["id"],
            kind=row["kind"],
            actor_id=row["actor_id"],
            os=row["os"],
            statement=row["statement"],
            created_at=row["created_at"],
            messages=json.loads(row["messages"]),
        )

    def _insert(self, memory: ShortTermMemory, memory_id: int | None) -> int:
        cursor = self._conn.execute(
            """
            INSERT INTO short_term_memories (id, kind, actor_id, os, statement, created_at, messages)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                memory_id,
                memory.kind,
                memory.actor_id,
                memory.os,
                memory.statement,
                memory.created_at,
                json.dumps(memory.messages),
            ),
        )
        return cursor.lastrowid

    def append(self, memory: ShortTermMemory) -> ShortTermMemory:
        with self._lock, self._conn:
            memory_id = self._insert(memory, None)
        return memory.model_copy(update={"id": memory_id})

    def list(self, filter: MemoryFilter | None = None) -> list[ShortTermMemory]:
        filter = filter or MemoryFilter()
        clauses: list[str] = []
        params: list[int] = []
        if filter.actor_id is not None:
            clauses.append("actor_id = ?")
            params.append(filter.actor_id)
        if filter.created_before is not None:
            clauses.append("created_at <= ?")
            params.append(filter.created_before)
        if filter.created_after is not None:
            clauses.append("created_at >= ?")
            params.append(filter.created_after)

        query = "SELECT * FROM short_term_memories"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY id"

        with self._lock:
            rows = self._conn.execute(query, params).fetchall()
        return [self._row_to_memory(row) for row in rows]

    def delete(self, memory_id: int) -> bool:
        with self._lock, self._conn:
            cursor = self._conn.execute("DELETE FROM short_term_memories WHERE id = ?", (memory_id,))
        return cursor.rowcount > 0

    def clear(self) -> None:
        with self._lock, self._conn:
            self._conn.execute("DELETE FROM short_term_memories")
            self._conn.execute("DELETE FROM sqlite_sequence WHERE name = 'short_term_memories'")

    def restore(self, memories: Iterable[ShortTermMemory]) -> None:
        memories = list(memories)
        with self._lock, self._conn:
            self._conn.execute("DELETE FROM short_term_memories")
            self._conn.execute("DELETE FROM sqlite_sequence WHERE name = 'short_term_memories'")
            for memory in memories:
                self._insert(memory, memory.id)

    def close(self) -> None:
        self._conn.close()


def create_memory_store(config: MemoryConfig) -> ShortTermMemoryStore:
    """Create the store selected by ``config.backend``."""
    if config.backend == "memory":
        return InMemoryShortTermMemoryStore()
    if config.backend == "sqlite":
        return SQLiteShortTermMemoryStore(config.path)
    raise ValueError(f"Unknown memory backend: {config.backend}")
