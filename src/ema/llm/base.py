from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from langchain_core.messages import AIMessage, BaseMessage
from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from langchain_core.language_models.chat_models import BaseChatModel


class LLMResponse(BaseModel):
    """Result of a single generation."""

    content: str = ""
    thinking: str | None = None
    tool_calls: list[dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def from_message(cls, message: AIMessage) -> LLMResponse:
        """Build a response from a LangChain AI message.

        Content blocks of type ``thinking``/``reasoning`` (Anthropic style) and
        ``reasoning_content`` in ``additional_kwargs`` (OpenAI-compatible
        providers) are collected into ``thinking``.
        """
        text_parts: list[str] = []
        thinking_parts: list[str] = []

        if isinstance(message.content, str):
            text_parts.append(message.content)
        else:
            for block in message.content:
                if isinstance(block, str):
                    text_parts.append(block)
                elif block.get("type") == "text":
                    text_parts.append(block.get("text", ""))
                elif block.get("type") in ("thinking", "reasoning"):
                    thinking_parts.append(block.get("thinking") or block.get("reasoning") or "")

        reasoning = message.additional_kwargs.get("reasoning_content")
        if reasoning:
            thinking_parts.append(reasoning)

        return cls(
            content="".join(text_parts),
            thinking="\n".join(thinking_parts) or None,
            tool_calls=[dict(tc) for tc in message.tool_calls],
        )

    def to_message(self) -> AIMessage:
        """Convert back to the message appended to an agent's history."""
        return AIMessage(content=self.content, tool_calls=self.tool_calls)


@runtime_checkable
class LLMClient(Protocol):
    """Stateless client performing the generative call for an agent."""

    async def generate(
        self, messages: Sequence[BaseMessage], tools: Sequence[Any] | None = None
    ) -> LLMResponse: ...


class ChatModelClient:
    """LLMClient backed by any LangChain chat model.

    Usage:
        client = ChatModelClient(create_model_from_config("openai:gpt-4o"))
        response = await client.generate([HumanMessage(content="Hello")])
    """

    def __init__(self, model: BaseChatModel):
        self.model = model

    async def generate(
        self, messages: Sequence[BaseMessage], tools: Sequence[Any] | None = None
    ) -> LLMResponse:
        runnable = self.model.bind_tools(list(tools)) if tools else self.model
        message = await runnable.ainvoke(list(messages))
        return LLMResponse.from_message(message)
