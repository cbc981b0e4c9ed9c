from __future__ import annotations

from ema.middleware.base import AgentMiddleware, ModelHandler
from ema.middleware.logging_middleware import LoggingMiddleware
from ema.middleware.memory import MemoryMiddleware
from ema.middleware.rate_limit import RateLimitMiddleware, RateLimitState

__all__ = [
    "AgentMiddleware",
    "LoggingMiddleware",
    "MemoryMiddleware",
    "ModelHandler",
    "RateLimitMiddleware",
    "RateLimitState",
]
