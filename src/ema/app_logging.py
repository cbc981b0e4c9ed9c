"""Structured JSONL application logging for EMA."""

import json
import logging as stdlib_logging
import time
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import IntEnum
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

from ema.config import get_settings


class LogLevel(IntEnum):
    """Log levels in order of severity."""

    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50


class Logger:
    """Application logger writing one JSON object per line, one file per day."""

    # Fields to redact (sensitive data)
    REDACTED_FIELDS = {"api_key", "password", "secret", "token"}

    def __init__(
        self,
        json_dir: str | Path | None = None,
        level: str | None = None,
        enabled: bool | None = None,
    ):
        config = get_settings().logging

        self.enabled = config.enabled if enabled is None else enabled
        self.level = LogLevel[(level or config.level).upper()]
        self.json_dir = Path(json_dir or config.json_dir)

        self._log_count = 0

        if self.enabled:
            self.json_dir.mkdir(parents=True, exist_ok=True)

    @property
    def log_count(self) -> int:
        return self._log_count

    def _redact(self, data: dict) -> dict:
        """Redact sensitive fields from data."""
        redacted = {}
        for key, value in data.items():
            if any(field in key.lower() for field in self.REDACTED_FIELDS):
                redacted[key] = "***REDACTED***"
            elif isinstance(value, dict):
                redacted[key] = self._redact(value)
            else:
                redacted[key] = value
        return redacted

    def _should_log(self, level: LogLevel) -> bool:
        return level >= self.level

    def _log(
        self, level: int, event: str, data: dict, user_id: str = "default", channel: str = "core"
    ):
        """Internal log method - handles filtering and formatting."""
        if not self.enabled:
            return

        log_level = LogLevel(level)
        if not self._should_log(log_level):
            return

        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "user_id": user_id,
            "event": event,
            "level": log_level.name.lower(),
            "channel": channel,
            "data": self._redact(data),
        }

        try:
            with open(self._get_log_file(), "a") as f:
                f.write(json.dumps(log_entry, default=str) + "\n")
            self._log_count += 1
        except OSError as e:
            stdlib_logging.error(f"Failed to write log: {e}")

    def _get_log_file(self) -> Path:
        """Get today's log file path."""
        today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        return self.json_dir / f"{today}.jsonl"

    def debug(self, event: str, data: dict, user_id: str = "default", channel: str = "core"):
        self._log(LogLevel.DEBUG, event, data, user_id, channel)

    def info(self, event: str, data: dict, user_id: str = "default", channel: str = "core"):
        self._log(LogLevel.INFO, event, data, user_id, channel)

    def warning(self, event: str, data: dict, user_id: str = "default", channel: str = "core"):
        self._log(LogLevel.WARNING, event, data, user_id, channel)

    def error(self, event: str, data: dict, user_id: str = "default", channel: str = "core"):
        self._log(LogLevel.ERROR, event, data, user_id, channel)

    @contextmanager
    def timer(
        self,
        event: str,
        data: dict | None = None,
        user_id: str = "default",
        channel: str = "core",
        level: int = LogLevel.INFO,
    ):
        """Context manager for timing operations.

        Emits ``<event>.start`` and ``<event>.end``, plus ``<event>.error``
        when the body raises. The exception is re-raised.
        """
        if not self.enabled:
            yield
            return

        data = dict(data or {})
        start_time = time.monotonic()
        data["run_id"] = str(uuid.uuid4())

        self._log(level, f"{event}.start", data, user_id, channel)

        try:
            yield
        except BaseException as e:
            error_data = {
                **data,
                "error": str(e),
                "error_type": type(e).__name__,
            }
            self._log(LogLevel.ERROR, f"{event}.error", error_data, user_id, channel)
            raise
        finally:
            data["duration_ms"] = int((time.monotonic() - start_time) * 1000)
            self._log(level, f"{event}.end", data, user_id, channel)


# Global logger instance
_logger: Logger | None = None


def get_logger() -> Logger:
    """Get or create logger instance."""
    global _logger
    if _logger is None:
        _logger = Logger()
    return _logger


def set_logger(logger: Logger | None) -> None:
    """Replace the global logger (``None`` recreates it from settings on next use)."""
    global _logger
    _logger = logger


def log_event(event: str, data: dict, user_id: str = "default", channel: str = "core"):
    """Log an event at info level."""
    get_logger().info(event, data, user_id, channel)
