from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from langchain_core.messages import HumanMessage

from ema.memory.models import MemoryKind, ShortTermMemory
from ema.middleware.base import AgentMiddleware, ModelHandler

if TYPE_CHECKING:
    from ema.agent.state import AgentState
    from ema.llm.base import LLMResponse
    from ema.memory.store import ShortTermMemoryStore

logger = logging.getLogger(__name__)


class MemoryMiddleware(AgentMiddleware):
    """Persist every generated reply as a short-term memory of the actor.

    The memory records the user messages that prompted the reply (``os``),
    the reply itself (``statement``) and the history indices of both.
    """

    def __init__(
        self,
        store: ShortTermMemoryStore,
        actor_id: int,
        kind: MemoryKind = "day",
    ) -> None:
        super().__init__()
        self.store = store
        self.actor_id = actor_id
        self.kind = kind

    async def awrap_model_call(self, state: AgentState, handler: ModelHandler) -> LLMResponse:
        response = await handler(state)
        if not response.content:
            return response

        reply_index = len(state.messages)
        prompt_indices: list[int] = []
        for index in range(reply_index - 1, -1, -1):
            if not isinstance(state.messages[index], HumanMessage):
                break
            prompt_indices.insert(0, index)

        observation = "\n".join(str(state.messages[i].content) for i in prompt_indices)
        memory = self.store.append(
            ShortTermMemory(
                kind=self.kind,
                actor_id=self.actor_id,
                os=observation,
                statement=response.content,
                messages=[*prompt_indices, reply_index],
            )
        )
        logger.debug(f"[MemoryMiddleware] Stored memory {memory.id} for actor {self.actor_id}")
        return response
