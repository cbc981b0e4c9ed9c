"""Unit tests for LoggingMiddleware.

Tests JSONL logging, model call events, error handling.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from ema.agent import AgentState
from ema.llm.base import LLMResponse
from ema.middleware.logging_middleware import LoggingMiddleware


@pytest.fixture
def agent_state():
    return AgentState(
        messages=[
            {"role": "user", "content": "Hello"},
            {"role": "assistant", "content": "Hi there"},
            {"role": "user", "content": "What's up?"},
        ]
    )


def read_entries(middleware: LoggingMiddleware) -> list[dict]:
    return [json.loads(line) for line in middleware._get_log_file().read_text().splitlines()]


class TestLoggingMiddleware:
    """Test suite for LoggingMiddleware."""

    def test_log_directory_creation(self, tmp_path):
        """Test that log directory is created if it doesn't exist."""
        log_dir = tmp_path / "logs"
        LoggingMiddleware(log_dir=log_dir, user_id="test-user")

        assert log_dir.exists()
        assert log_dir.is_dir()

    def test_log_file_name(self, tmp_path):
        """Test that log file is named after the current day."""
        log_dir = tmp_path / "logs"
        middleware = LoggingMiddleware(log_dir=log_dir, user_id="test-user")

        log_file = middleware._get_log_file()
        expected_name = f"agent-{datetime.now(timezone.utc).strftime('%Y-%m-%d')}.jsonl"

        assert log_file.name == expected_name
        assert log_file.parent == log_dir

    def test_log_entry_format(self, tmp_path):
        """Test that log entries have correct format."""
        middleware = LoggingMiddleware(log_dir=tmp_path / "logs", user_id="test-user")

        middleware._log("test_event", {"key": "value"})

        [entry] = read_entries(middleware)
        assert entry["user_id"] == "test-user"
        assert entry["event"] == "test_event"
        assert entry["data"] == {"key": "value"}
        assert "timestamp" in entry

    @pytest.mark.asyncio
    async def test_model_call_logged(self, tmp_path, agent_state):
        """Test that start and completion of a model call are logged."""
        middleware = LoggingMiddleware(log_dir=tmp_path / "logs", user_id="test-user")
        handler = AsyncMock(return_value=LLMResponse(content="All good"))

        response = await middleware.awrap_model_call(agent_state, handler)

        assert response.content == "All good"
        handler.assert_awaited_once_with(agent_state)

        start, complete = read_entries(middleware)
        assert start["event"] == "model_call_start"
        assert start["data"]["message_count"] == 3
        assert start["data"]["last_user_message"] == "What's up?"
        assert complete["event"] == "model_call_complete"
        assert complete["data"]["response_preview"] == "All good"
        assert complete["data"]["success"] is True
        assert "duration_ms" in complete["data"]

    @pytest.mark.asyncio
    async def test_model_calls_logging_disabled(self, tmp_path, agent_state):
        """Test that model call logging can be disabled."""
        middleware = LoggingMiddleware(
            log_dir=tmp_path / "logs",
            user_id="test-user",
            log_model_calls=False,
        )

        await middleware.awrap_model_call(agent_state, AsyncMock(return_value=LLMResponse()))

        assert not middleware._get_log_file().exists()

    @pytest.mark.asyncio
    async def test_model_call_error_logged(self, tmp_path, agent_state):
        """Test that errors in model calls are logged and re-raised."""
        middleware = LoggingMiddleware(log_dir=tmp_path / "logs", user_id="test-user")

        async def failing_handler(state):
            raise ValueError("Test error")

        with pytest.raises(ValueError, match="Test error"):
            await middleware.awrap_model_call(agent_state, failing_handler)

        entries = read_entries(middleware)
        assert entries[-1]["event"] == "model_call_error"
        assert entries[-1]["data"]["error"] == "Test error"
        assert entries[-1]["data"]["error_type"] == "ValueError"

    @pytest.mark.asyncio
    async def test_log_errors_disabled(self, tmp_path, agent_state):
        """Test that error logging can be disabled."""
        middleware = LoggingMiddleware(
            log_dir=tmp_path / "logs",
            user_id="test-user",
            log_model_calls=False,
            log_errors=False,
        )

        async def failing_handler(state):
            raise ValueError("Test error")

        with pytest.raises(ValueError):
            await middleware.awrap_model_call(agent_state, failing_handler)

        assert not middleware._get_log_file().exists()
