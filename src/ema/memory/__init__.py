"""Short-term memory for EMA actors."""

from ema.memory.models import MemoryFilter, MemoryKind, ShortTermMemory, now_ms
from ema.memory.store import (
    InMemoryShortTermMemoryStore,
    ShortTermMemoryStore,
    SQLiteShortTermMemoryStore,
    create_memory_store,
)

__all__ = [
    "InMemoryShortTermMemoryStore",
    "MemoryFilter",
    "MemoryKind",
    "SQLiteShortTermMemoryStore",
    "ShortTermMemory",
    "ShortTermMemoryStore",
    "create_memory_store",
    "now_ms",
]
