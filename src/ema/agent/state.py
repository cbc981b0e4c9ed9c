"""Conversational state owned by a single agent."""

from __future__ import annotations

from typing import Any

from langchain_core.messages import (
    BaseMessage,
    convert_to_messages,
    messages_from_dict,
    messages_to_dict,
)
from pydantic import BaseModel, Field, field_validator


class AgentState(BaseModel):
    """State of an agent: system prompt, message history and tools.

    More state can be added by subclassing, e.g. a memory buffer for agents
    with long-term memory.
    """

    system_prompt: str = ""
    messages: list[BaseMessage] = Field(default_factory=list)
    tools: list[Any] = Field(default_factory=list)

    @field_validator("messages", mode="before")
    @classmethod
    def _coerce_messages(cls, value: Any) -> list[BaseMessage]:
        if value is None:
            return []
        return convert_to_messages(value)

    def replace(self, other: AgentState) -> None:
        """Replace every field with the values of ``other``, keeping this object's identity."""
        for name in type(self).model_fields:
            value = getattr(other, name)
            setattr(self, name, list(value) if isinstance(value, list) else value)

    def to_snapshot(self) -> dict[str, Any]:
        """Serialize to plain JSON-compatible data. Tools are not serialized."""
        return {
            "system_prompt": self.system_prompt,
            "messages": messages_to_dict(self.messages),
        }

    @classmethod
    def from_snapshot(cls, data: dict[str, Any], tools: list[Any] | None = None) -> AgentState:
        return cls(
            system_prompt=data.get("system_prompt", ""),
            messages=messages_from_dict(data.get("messages", [])),
            tools=tools or [],
        )
