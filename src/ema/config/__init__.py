"""Config module for EMA."""

from ema.config.settings import (
    AgentConfig,
    ApiConfig,
    AppConfig,
    LoggingConfig,
    MemoryConfig,
    RateLimitConfig,
    SchedulerConfig,
    SnapshotConfig,
    get_settings,
    reload_settings,
)

__all__ = [
    "AgentConfig",
    "ApiConfig",
    "AppConfig",
    "LoggingConfig",
    "MemoryConfig",
    "RateLimitConfig",
    "SchedulerConfig",
    "SnapshotConfig",
    "get_settings",
    "reload_settings",
]
