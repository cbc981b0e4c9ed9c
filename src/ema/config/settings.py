"""Settings module for EMA."""

from pathlib import Path

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings


class _BaseSettings(BaseSettings):
    """Base settings with common config."""

    class Config:
        extra = "ignore"


class AgentConfig(_BaseSettings):
    """Agent configuration."""

    name: str = Field(default="EMA")
    model: str = Field(default="openai:gpt-4o-mini")
    system_prompt: str = Field(default="You are EMA, a helpful companion with a long memory.")

    class Config:
        env_prefix = "AGENT_"


class SchedulerConfig(_BaseSettings):
    """Scheduler configuration."""

    max_concurrency: int = Field(default=4, ge=1)

    class Config:
        env_prefix = "SCHEDULER_"


class RateLimitConfig(_BaseSettings):
    """Per-actor model call rate limiting."""

    enabled: bool = False
    max_model_calls_per_minute: int = 30
    window_seconds: int = 60

    class Config:
        env_prefix = "RATE_LIMIT_"


class MemoryConfig(_BaseSettings):
    """Short-term memory store configuration."""

    backend: str = "memory"  # memory, sqlite
    path: str = "data/memory/short_term.db"
    persist_responses: bool = True

    class Config:
        env_prefix = "MEMORY_"


class SnapshotConfig(_BaseSettings):
    """Snapshot configuration."""

    directory: str = "data/snapshots"

    class Config:
        env_prefix = "SNAPSHOT_"


class LoggingConfig(_BaseSettings):
    """Logging configuration."""

    enabled: bool = True
    level: str = "info"  # debug, info, warning, error
    json_dir: str = "data/logs"

    class Config:
        env_prefix = "LOGGING_"


class ApiConfig(_BaseSettings):
    """API server configuration."""

    host: str = "0.0.0.0"
    port: int = 3000
    reload: bool = False

    class Config:
        env_prefix = "API_"


class AppConfig(_BaseSettings):
    """Main application configuration."""

    agent: AgentConfig = Field(default_factory=AgentConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    snapshot: SnapshotConfig = Field(default_factory=SnapshotConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "AppConfig":
        """Load configuration from YAML file."""
        path = Path(path)
        if not path.exists():
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f)

        if not data:
            return cls()

        return cls(**data)

    class Config:
        env_file = ".env"
        env_nested_delimiter = "__"
        extra = "ignore"


_config: AppConfig | None = None


def get_settings() -> AppConfig:
    """Get application settings singleton."""
    global _config
    if _config is None:
        _config = AppConfig.from_yaml("config.yaml")
    return _config


def reload_settings() -> AppConfig:
    """Reload settings (useful for testing)."""
    global _config
    _config = None
    return get_settings()
