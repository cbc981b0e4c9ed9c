"""LLM providers for EMA."""

import os
from typing import Any, Optional

from langchain.chat_models import init_chat_model
from langchain_core.language_models import BaseChatModel

from ema.config import get_settings

PROVIDER_API_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "google_genai": "GOOGLE_API_KEY",
    "ollama": "OLLAMA_API_KEY",
}


def parse_model_string(model_str: str) -> tuple[str, str]:
    """Split a ``provider:model`` string.

    Strings without a provider prefix default to OpenAI.
    """
    if ":" in model_str:
        provider, model_name = model_str.split(":", 1)
    else:
        provider, model_name = "openai", model_str

    provider = provider.strip().lower()
    if provider == "google":
        provider = "google_genai"
    if provider not in PROVIDER_API_KEY_ENV:
        raise ValueError(f"Unknown provider: {provider}")
    return provider, model_name.strip()


def create_chat_model(
    provider: str, model: str, api_key: Optional[str] = None, **kwargs: Any
) -> BaseChatModel:
    """Create a chat model for a known provider.

    Args:
        provider: One of ``openai``, ``anthropic``, ``google_genai``, ``ollama``
        model: Model name
        api_key: API key; read from the provider's environment variable if omitted

    Returns:
        Initialized chat model
    """
    api_key = api_key or os.environ.get(PROVIDER_API_KEY_ENV[provider])
    if api_key:
        kwargs["api_key"] = api_key
    if provider == "ollama" and "base_url" not in kwargs:
        kwargs["base_url"] = os.environ.get("OLLAMA_BASE_URL", "http://localhost:11434")

    return init_chat_model(model=model, model_provider=provider, **kwargs)


def create_model_from_config(config_model: Optional[str] = None) -> BaseChatModel:
    """Create a model based on configuration.

    Args:
        config_model: Model string (e.g., "openai:gpt-4o", "anthropic:claude-sonnet-4-20250514")

    Returns:
        Initialized chat model
    """
    model_str = config_model or get_settings().agent.model
    provider, model_name = parse_model_string(model_str)
    return create_chat_model(provider, model_name)
