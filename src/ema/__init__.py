"""EMA - agent execution and scheduling runtime for long-running conversational actors."""

from ema.actor import Actor, ActorMessageEvent, ActorTextInput
from ema.agent import Agent, AgentState, Continuation, ExecutionResult
from ema.config import get_settings, reload_settings
from ema.errors import (
    AgentCancelledError,
    AgentDisposedError,
    ContinuationReusedError,
    EmaError,
    SnapshotNotFoundError,
)
from ema.llm import ChatModelClient, LLMClient, LLMResponse
from ema.scheduler import AgentScheduler, AgentTask, CallbackRequest, MessageRequest

__version__ = "0.1.0"

__all__ = [
    "Actor",
    "ActorMessageEvent",
    "ActorTextInput",
    "Agent",
    "AgentCancelledError",
    "AgentDisposedError",
    "AgentScheduler",
    "AgentState",
    "AgentTask",
    "CallbackRequest",
    "ChatModelClient",
    "Continuation",
    "ContinuationReusedError",
    "EmaError",
    "ExecutionResult",
    "LLMClient",
    "LLMResponse",
    "MessageRequest",
    "SnapshotNotFoundError",
    "get_settings",
    "reload_settings",
]
