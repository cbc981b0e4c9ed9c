"""Agent execution primitives."""

from ema.agent.agent import Agent, Continuation, ExecutionResult, StateCallback
from ema.agent.state import AgentState

__all__ = [
    "Agent",
    "AgentState",
    "Continuation",
    "ExecutionResult",
    "StateCallback",
]
