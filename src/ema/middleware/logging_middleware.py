from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from langchain_core.messages import HumanMessage

from ema.middleware.base import AgentMiddleware, ModelHandler

if TYPE_CHECKING:
    from ema.agent.state import AgentState
    from ema.llm.base import LLMResponse

logger = logging.getLogger(__name__)


class LoggingMiddleware(AgentMiddleware):
    """Log agent model calls to JSONL files for debugging and analytics.

    Usage:
        agent = Agent(
            client,
            middleware=[LoggingMiddleware(log_dir=Path("data/logs"), user_id="1")],
        )
    """

    def __init__(
        self,
        log_dir: Path | None = None,
        user_id: str = "default",
        log_model_calls: bool = True,
        log_errors: bool = True,
    ) -> None:
        super().__init__()
        self.log_dir = Path(log_dir or "data/logs")
        self.user_id = user_id
        self.log_model_calls = log_model_calls
        self.log_errors = log_errors

        self.log_dir.mkdir(parents=True, exist_ok=True)
        logger.debug(f"[LoggingMiddleware] Initialized for user '{user_id}', log_dir={self.log_dir}")

    def _get_log_file(self) -> Path:
        """Get log file path for today."""
        date_str = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        return self.log_dir / f"agent-{date_str}.jsonl"

    def _log(self, event: str, data: dict) -> None:
        """Write a log entry."""
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "user_id": self.user_id,
            "event": event,
            "data": data,
        }

        with open(self._get_log_file(), "a") as f:
            f.write(json.dumps(entry) + "\n")

    async def awrap_model_call(self, state: AgentState, handler: ModelHandler) -> LLMResponse:
        """Wrap model call with timing and error logging."""
        start_time = datetime.now(timezone.utc)

        if self.log_model_calls:
            last_user_msg = None
            for msg in reversed(state.messages):
                if isinstance(msg, HumanMessage):
                    last_user_msg = str(msg.content)[:200]
                    break
            self._log(
                "model_call_start",
                {
                    "message_count": len(state.messages),
                    "last_user_message": last_user_msg,
                },
            )

        try:
            response = await handler(state)
        except Exception as e:
            if self.log_errors:
                duration_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
                logger.debug(f"[LoggingMiddleware] Model call failed after {duration_ms:.2f}ms: {e}")
                self._log(
                    "model_call_error",
                    {
                        "duration_ms": round(duration_ms, 2),
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                )
            raise

        if self.log_model_calls:
            duration_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
            self._log(
                "model_call_complete",
                {
                    "duration_ms": round(duration_ms, 2),
                    "message_count": len(state.messages),
                    "response_preview": response.content[:200],
                    "tool_calls": [tc.get("name") for tc in response.tool_calls],
                    "success": True,
                },
            )

        return response
