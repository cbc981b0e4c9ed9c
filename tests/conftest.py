"""Shared fixtures and configuration for pytest."""

import asyncio
from collections.abc import Generator, Sequence
from pathlib import Path
from typing import Any

import pytest
from langchain_core.messages import BaseMessage

from ema.app_logging import Logger, set_logger
from ema.config import reload_settings
from ema.llm.base import LLMResponse


# =============================================================================
# Isolation
# =============================================================================

@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Run every test from an empty directory with fresh settings and logger.

    Settings are read from ``config.yaml`` in the working directory, and all
    data paths are relative, so nothing leaks outside ``tmp_path``.
    """
    monkeypatch.chdir(tmp_path)
    reload_settings()
    set_logger(Logger(json_dir=tmp_path / "logs", level="debug", enabled=True))
    yield
    set_logger(None)
    reload_settings()


# =============================================================================
# Fake backend
# =============================================================================

class FakeLLMClient:
    """LLMClient test double.

    Replies come from ``replies`` in order, then ``"reply <n>"``. When
    ``gate`` is set, every call blocks until the event is set. ``max_active``
    records the highest number of overlapping calls.
    """

    def __init__(self, replies: Sequence[str] = (), error: Exception | None = None):
        self.replies = list(replies)
        self.error = error
        self.gate: asyncio.Event | None = None
        self.calls: list[list[BaseMessage]] = []
        self.tools: list[Any] = []
        self.active = 0
        self.max_active = 0

    async def generate(self, messages: Sequence[BaseMessage], tools: Sequence[Any] | None = None) -> LLMResponse:
        self.calls.append(list(messages))
        self.tools.append(tools)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)
            if self.error is not None:
                raise self.error
            content = self.replies.pop(0) if self.replies else f"reply {len(self.calls)}"
            return LLMResponse(content=content)
        finally:
            self.active -= 1


@pytest.fixture
def fake_client() -> FakeLLMClient:
    """Backend double replying ``"hello"`` first."""
    return FakeLLMClient(replies=["hello"])


@pytest.fixture
def make_client():
    """Factory for configured backend doubles."""
    return FakeLLMClient


async def settle(rounds: int = 20) -> None:
    """Let pending tasks run for a few event loop iterations."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def run_pending():
    """Coroutine function that yields to the event loop a few times."""
    return settle
