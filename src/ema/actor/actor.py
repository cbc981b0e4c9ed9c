"""User-facing actor: input queue in, output events out."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from langchain_core.messages import HumanMessage

from ema.actor.events import ActorEventSource, Listener
from ema.actor.types import ActorInput, ActorInputList, ActorMessageEvent
from ema.app_logging import get_logger
from ema.errors import AgentCancelledError, AgentDisposedError
from ema.scheduler.scheduler import CallbackRequest

if TYPE_CHECKING:
    from ema.agent.agent import Agent, Continuation
    from ema.agent.state import AgentState
    from ema.scheduler.scheduler import AgentScheduler

logger = logging.getLogger(__name__)


class Actor:
    """Takes user inputs and publishes generated outputs.

    ``add_inputs`` only queues; a background drain folds every queued text
    input into one agent execution through the scheduler and emits the reply
    as an ``output`` event.

    Usage:
        actor = Actor(user_id=1, actor_id=1, agent=agent, scheduler=scheduler)
        actor.subscribe(lambda event: print(event.content))
        await actor.add_inputs([{"kind": "text", "content": "Hello"}])
    """

    def __init__(self, user_id: int, actor_id: int, agent: Agent, scheduler: AgentScheduler):
        self.user_id = user_id
        self.actor_id = actor_id
        self.agent = scheduler.adopt(agent)
        self.scheduler = scheduler
        self.events = ActorEventSource()

        self._inputs: deque[ActorInput] = deque()
        self._worker: asyncio.Task[None] | None = None
        self._disposed = False

    def __repr__(self) -> str:
        return f"Actor(user_id={self.user_id}, actor_id={self.actor_id})"

    @property
    def pending_inputs(self) -> int:
        return len(self._inputs)

    def subscribe(self, callback: Listener) -> Listener:
        """Register an output listener; the callback itself is the handle."""
        self.events.on("output", callback)
        return callback

    def unsubscribe(self, callback: Listener) -> None:
        self.events.off("output", callback)

    async def add_inputs(self, inputs: Iterable[ActorInput | dict[str, Any]]) -> None:
        """Queue a batch of inputs and make sure they get processed.

        Returns once the batch is queued, not once it is processed.

        Raises:
            pydantic.ValidationError: an input is malformed (nothing is queued)
            AgentDisposedError: the actor was disposed
        """
        if self._disposed:
            raise AgentDisposedError(f"{self!r} is disposed")

        batch = ActorInputList.validate_python(list(inputs))
        if not batch:
            return

        self._inputs.extend(batch)
        get_logger().debug(
            "actor.inputs_queued",
            {"actor_id": self.actor_id, "count": len(batch)},
            user_id=str(self.user_id),
            channel="actor",
        )

        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(
                self._drain(), name=f"actor:{self.user_id}:{self.actor_id}"
            )

    async def _drain(self) -> None:
        while self._inputs:
            batch = list(self._inputs)
            self._inputs.clear()
            try:
                await self._process(batch)
            except AgentCancelledError:
                logger.info(f"[Actor] {self!r} processing stopped")
            except Exception as e:
                get_logger().error(
                    "actor.process_failed",
                    {"actor_id": self.actor_id, "error": str(e), "error_type": type(e).__name__},
                    user_id=str(self.user_id),
                    channel="actor",
                )

    async def _process(self, batch: list[ActorInput]) -> None:
        texts = [item.content for item in batch if item.kind == "text"]
        if not texts:
            return

        async def fold_inputs(state: AgentState, next_: Continuation) -> AgentState:
            for text in texts:
                state.messages.append(HumanMessage(content=text))
            await next_()
            return state

        with get_logger().timer(
            "actor.process",
            {"actor_id": self.actor_id, "inputs": len(texts)},
            user_id=str(self.user_id),
            channel="actor",
        ):
            result = await self.scheduler.submit(self.agent, CallbackRequest(fold_inputs))

        if result.response is not None:
            await self.events.emit("output", ActorMessageEvent(content=result.response.content))

    async def wait_for_idle(self, timeout: float | None = None) -> None:
        """Wait until queued inputs are processed and the agent is idle."""

        async def _wait() -> None:
            while self._worker is not None and not self._worker.done():
                await asyncio.wait({self._worker})
            await self.scheduler.wait_for_idle(self.agent)

        await asyncio.wait_for(_wait(), timeout)

    async def dispose(self) -> None:
        """Stop processing, stop the agent and drop all listeners."""
        self._disposed = True
        self._inputs.clear()
        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
            await asyncio.gather(self._worker, return_exceptions=True)
        await self.agent.dispose()
        self.events.clear()
