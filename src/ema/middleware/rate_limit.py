from __future__ import annotations

import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ema.llm.base import LLMResponse
from ema.middleware.base import AgentMiddleware, ModelHandler

if TYPE_CHECKING:
    from ema.agent.state import AgentState


@dataclass
class RateLimitState:
    """Track rate limit state for one key."""

    model_calls: list[float] = field(default_factory=list)


class RateLimitMiddleware(AgentMiddleware):
    """Limit backend calls per key within a sliding time window.

    When the limit is reached the backend is skipped and the agent receives a
    canned reply instead, so the conversation still gets an answer.

    Usage:
        agent = Agent(
            client,
            middleware=[RateLimitMiddleware(max_model_calls_per_minute=30, key="1:1")],
        )
    """

    def __init__(
        self,
        max_model_calls_per_minute: int = 60,
        window_seconds: int = 60,
        key: str = "default",
    ) -> None:
        super().__init__()
        self.max_model_calls = max_model_calls_per_minute
        self.window_seconds = window_seconds
        self.key = key

        self._states: dict[str, RateLimitState] = defaultdict(RateLimitState)

    def _cleanup_old_calls(self, state: RateLimitState) -> None:
        """Remove calls outside the time window."""
        cutoff = time.time() - self.window_seconds
        state.model_calls = [t for t in state.model_calls if t > cutoff]

    def _check_model_limit(self, key: str) -> tuple[bool, int]:
        """Check if another model call is allowed.

        Returns (allowed, remaining_calls).
        """
        state = self._states[key]
        self._cleanup_old_calls(state)

        remaining = self.max_model_calls - len(state.model_calls)
        return remaining > 0, remaining

    def _record_model_call(self, key: str) -> None:
        self._states[key].model_calls.append(time.time())

    async def awrap_model_call(self, state: AgentState, handler: ModelHandler) -> LLMResponse:
        """Check the limit before the backend call."""
        allowed, _ = self._check_model_limit(self.key)
        if not allowed:
            return LLMResponse(
                content=(
                    f"Rate limit exceeded. Please wait {self.window_seconds} seconds "
                    "before trying again."
                )
            )

        self._record_model_call(self.key)
        return await handler(state)

    def get_status(self, key: str | None = None) -> dict:
        """Get rate limit status for a key."""
        k = key or self.key
        state = self._states[k]
        self._cleanup_old_calls(state)
        allowed, remaining = self._check_model_limit(k)

        return {
            "key": k,
            "model_calls": {
                "used": len(state.model_calls),
                "limit": self.max_model_calls,
                "remaining": remaining,
                "allowed": allowed,
            },
            "window_seconds": self.window_seconds,
        }
