"""Model backends behind the ``ChatModel`` contract."""

from __future__ import annotations

from agent_runtime.config.settings import Settings
from agent_runtime.core.errors import ConfigurationError
from agent_runtime.llm.base import ChatModel
from agent_runtime.llm.gemini import GeminiChatModel
from agent_runtime.llm.openai import OpenAIChatModel

__all__ = [
    "ChatModel",
    "GeminiChatModel",
    "OpenAIChatModel",
    "build_chat_model",
]


def build_chat_model(settings: Settings) -> ChatModel:
    provider = settings.llm_provider.lower().strip()
    if provider == "openai":
        api_key = settings.resolved_openai_api_key()
        if not api_key:
            raise ConfigurationError("OPENAI_API_KEY is missing for llm provider openai")
        return OpenAIChatModel(
            api_key=api_key,
            model=settings.llm_model,
            base_url=settings.llm_base_url,
            timeout_s=settings.llm_timeout_s,
            max_retries=settings.llm_max_retries,
            backoff_s=settings.llm_backoff_s,
        )
    if provider == "gemini":
        api_key = settings.resolved_gemini_api_key()
        if not api_key:
            raise ConfigurationError("GEMINI_API_KEY is missing for llm provider gemini")
        return GeminiChatModel(
            api_key=api_key,
            model=settings.llm_model,
            base_url=settings.llm_base_url,
            timeout_s=settings.llm_timeout_s,
            max_retries=settings.llm_max_retries,
            backoff_s=settings.llm_backoff_s,
        )
    raise ConfigurationError(f"unsupported llm provider: {settings.llm_provider}")
