"""Short-term memory models for EMA."""

from __future__ import annotations

import time
from typing import Literal

from pydantic import BaseModel, Field

MemoryKind = Literal["day", "month", "year"]


def now_ms() -> int:
    """Current time as milliseconds since the epoch."""
    return int(time.time() * 1000)


class ShortTermMemory(BaseModel):
    """A memory an actor keeps about a recent period."""

    id: int | None = Field(None, description="Assigned by the store on append")
    kind: MemoryKind = Field(..., description="Period the memory covers")
    actor_id: int = Field(..., description="Actor that owns the memory")
    os: str = Field("", description="Observation the memory was formed from")
    statement: str = Field(..., description="What the actor remembers")
    created_at: int = Field(default_factory=now_ms, description="Creation time (ms epoch)")
    messages: list[int] = Field(default_factory=list, description="Indices of the source messages")


class MemoryFilter(BaseModel):
    """Filter for listing memories. Time bounds are inclusive."""

    actor_id: int | None = None
    created_before: int | None = None
    created_after: int | None = None

    def matches(self, memory: ShortTermMemory) -> bool:
        if self.actor_id is not None and memory.actor_id != self.actor_id:
            return False
        if self.created_before is not None and memory.created_at > self.created_before:
            return False
        if self.created_after is not None and memory.created_at < self.created_after:
            return False
        return True
