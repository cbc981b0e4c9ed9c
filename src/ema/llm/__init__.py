"""LLM module for EMA."""

from ema.llm.base import ChatModelClient, LLMClient, LLMResponse
from ema.llm.providers import create_chat_model, create_model_from_config, parse_model_string

__all__ = [
    "ChatModelClient",
    "LLMClient",
    "LLMResponse",
    "create_chat_model",
    "create_model_from_config",
    "parse_model_string",
]
