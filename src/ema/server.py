"""Process-wide registry of actors, plus snapshot and restore."""

from __future__ import annotations

import asyncio
import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ema.actor.actor import Actor
from ema.agent.state import AgentState
from ema.app_logging import get_logger
from ema.config import AppConfig, get_settings
from ema.errors import SnapshotNotFoundError
from ema.llm.base import ChatModelClient, LLMClient
from ema.llm.providers import create_model_from_config
from ema.memory.models import ShortTermMemory
from ema.memory.store import ShortTermMemoryStore, create_memory_store
from ema.middleware import AgentMiddleware, LoggingMiddleware, MemoryMiddleware, RateLimitMiddleware
from ema.scheduler.scheduler import AgentScheduler

SNAPSHOT_NAME_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9_.-]*$"
SNAPSHOT_VERSION = 1


class EmaServer:
    """Owns the scheduler, the memory store and every actor of the process."""

    def __init__(
        self,
        client: LLMClient | None = None,
        settings: AppConfig | None = None,
        memory_store: ShortTermMemoryStore | None = None,
    ):
        self.settings = settings or get_settings()
        self.client = client or ChatModelClient(create_model_from_config(self.settings.agent.model))
        self.memory_store = memory_store or create_memory_store(self.settings.memory)
        self.scheduler = AgentScheduler(
            self.client, max_concurrency=self.settings.scheduler.max_concurrency
        )
        self.snapshot_dir = Path(self.settings.snapshot.directory)

        self._actors: dict[tuple[int, int], Actor] = {}
        self._lock = asyncio.Lock()

    @property
    def actors(self) -> list[Actor]:
        return list(self._actors.values())

    def _build_middleware(self, user_id: int, actor_id: int) -> list[AgentMiddleware]:
        middleware: list[AgentMiddleware] = []
        if self.settings.logging.enabled:
            middleware.append(
                LoggingMiddleware(log_dir=Path(self.settings.logging.json_dir), user_id=str(user_id))
            )
        if self.settings.rate_limit.enabled:
            middleware.append(
                RateLimitMiddleware(
                    max_model_calls_per_minute=self.settings.rate_limit.max_model_calls_per_minute,
                    window_seconds=self.settings.rate_limit.window_seconds,
                    key=f"{user_id}:{actor_id}",
                )
            )
        if self.settings.memory.persist_responses:
            middleware.append(MemoryMiddleware(self.memory_store, actor_id=actor_id))
        return middleware

    async def get_actor(self, user_id: int, actor_id: int) -> Actor:
        """Get or create the actor for ``(user_id, actor_id)``."""
        async with self._lock:
            key = (user_id, actor_id)
            if key not in self._actors:
                agent = self.scheduler.create_agent(
                    AgentState(system_prompt=self.settings.agent.system_prompt),
                    name=f"actor-{user_id}-{actor_id}",
                    middleware=self._build_middleware(user_id, actor_id),
                )
                self._actors[key] = Actor(user_id, actor_id, agent, self.scheduler)
                get_logger().info(
                    "server.actor_created",
                    {"actor_id": actor_id},
                    user_id=str(user_id),
                    channel="server",
                )
            return self._actors[key]

    def _snapshot_path(self, name: str) -> Path:
        if not re.match(SNAPSHOT_NAME_PATTERN, name):
            raise ValueError(f"Invalid snapshot name: {name!r}")
        return self.snapshot_dir / f"{name}.json"

    async def snapshot(self, name: str = "default") -> str:
        """Write all actor states and short-term memories to a snapshot file.

        Each actor's state is read through its agent queue, so the snapshot
        never observes a half-finished execution.

        Returns:
            The snapshot file name
        """
        path = self._snapshot_path(name)
        actors: list[dict[str, Any]] = []

        for actor in self.actors:
            captured: dict[str, Any] = {}

            async def capture(state: AgentState, next_: Any) -> None:
                captured.update(state.to_snapshot())

            await actor.agent.run(capture)
            actors.append({"user_id": actor.user_id, "actor_id": actor.actor_id, "state": captured})

        data = {
            "version": SNAPSHOT_VERSION,
            "created_at": datetime.now(timezone.utc).isoformat(),
            "actors": actors,
            "short_term_memories": [m.model_dump() for m in self.memory_store.list()],
        }

        self.snapshot_dir.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2))

        get_logger().info(
            "server.snapshot_created",
            {"name": name, "actors": len(actors), "file": path.name},
            channel="server",
        )
        return path.name

    async def restore(self, name: str = "default") -> str:
        """Load a snapshot written by ``snapshot``.

        Actor states are replaced in place; actors missing from the process
        are created. Short-term memories are replaced wholesale.

        Raises:
            SnapshotNotFoundError: no snapshot with that name exists
        """
        path = self._snapshot_path(name)
        if not path.exists():
            raise SnapshotNotFoundError(name)

        data = json.loads(path.read_text())

        for entry in data.get("actors", []):
            actor = await self.get_actor(entry["user_id"], entry["actor_id"])
            restored = AgentState.from_snapshot(entry["state"])

            async def apply(state: AgentState, next_: Any, restored: AgentState = restored) -> AgentState:
                restored.tools = state.tools
                return restored

            await actor.agent.run(apply)

        memories = [ShortTermMemory(**m) for m in data.get("short_term_memories", [])]
        self.memory_store.restore(memories)

        message = f"Restored snapshot '{name}' ({len(data.get('actors', []))} actors, {len(memories)} memories)"
        get_logger().info("server.snapshot_restored", {"name": name}, channel="server")
        return message

    async def shutdown(self) -> None:
        async with self._lock:
            actors = list(self._actors.values())
            self._actors.clear()
        for actor in actors:
            await actor.dispose()
        await self.scheduler.shutdown()


_server: EmaServer | None = None


def get_server() -> EmaServer:
    """Get or create the process-wide server."""
    global _server
    if _server is None:
        _server = EmaServer()
    return _server


def set_server(server: EmaServer | None) -> None:
    global _server
    _server = server
