from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ema.agent.state import AgentState
    from ema.llm.base import LLMResponse

ModelHandler = Callable[["AgentState"], Awaitable["LLMResponse"]]


class AgentMiddleware:
    """Cross-cutting behavior around an agent's backend call.

    An agent composes its middleware list outermost-first: the first entry
    sees the call before every other entry and the response after them.
    Returning a response without awaiting ``handler`` skips the backend.
    """

    @property
    def name(self) -> str:
        return type(self).__name__

    async def awrap_model_call(self, state: AgentState, handler: ModelHandler) -> LLMResponse:
        return await handler(state)
