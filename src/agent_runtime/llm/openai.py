"""OpenAI chat completions backend."""

from __future__ import annotations

from typing import Any, Sequence

from agent_runtime.core.context import RunContext
from agent_runtime.core.models import ModelInput, ModelOutput, Stats, Turn
from agent_runtime.llm.base import post_json, request_with_retry

DEFAULT_BASE_URL = "https://api.openai.com/v1"


class OpenAIChatModel:
    """Chat model backed by the OpenAI chat completions REST API."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str = DEFAULT_BASE_URL,
        timeout_s: float = 60.0,
        max_retries: int = 1,
        backoff_s: float = 0.5,
    ) -> None:
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY is missing")
        self.api_key = api_key
        self.model = model
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.timeout_s = timeout_s
        self.max_retries = max(0, max_retries)
        self.backoff_s = max(0.0, backoff_s)

    def generate(
        self,
        ctx: RunContext,
        system_prompt: str,
        history: Sequence[Turn],
        payload: ModelInput,
    ) -> ModelOutput:
        body = {
            "model": self.model,
            "messages": build_messages(system_prompt, history, payload),
        }
        response_json = request_with_retry(
            lambda: post_json(
                f"{self.base_url}/chat/completions",
                body,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout_s=self.timeout_s,
            ),
            ctx=ctx,
            max_retries=self.max_retries,
            backoff_s=self.backoff_s,
            model=self.model,
        )
        return ModelOutput(text=extract_text(response_json), stats=extract_stats(response_json))


def build_messages(
    system_prompt: str,
    history: Sequence[Turn],
    payload: ModelInput,
) -> list[dict[str, Any]]:
    messages: list[dict[str, Any]] = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    for turn in history:
        messages.append({"role": turn.role, "content": turn.content})

    images = [image for image in payload.images if image.data or image.path]
    if images:
        parts: list[dict[str, Any]] = []
        if payload.text:
            parts.append({"type": "text", "text": payload.text})
        for image in images:
            url = image.path or f"data:image/png;base64,{image.data}"
            parts.append({"type": "image_url", "image_url": {"url": url}})
        messages.append({"role": "user", "content": parts})
    elif payload.text:
        messages.append({"role": "user", "content": payload.text})
    return messages


def extract_text(response_json: dict[str, Any]) -> str:
    choices = response_json.get("choices", [])
    if not choices:
        raise RuntimeError("OpenAI response did not contain choices")

    content = choices[0].get("message", {}).get("content")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        segments = [
            item["text"]
            for item in content
            if isinstance(item, dict) and isinstance(item.get("text"), str)
        ]
        return "".join(segments)
    raise RuntimeError("OpenAI response content could not be parsed as text")


def extract_stats(response_json: dict[str, Any]) -> Stats:
    usage = response_json.get("usage")
    if not isinstance(usage, dict):
        return Stats()
    return Stats(
        input_token_count=int(usage.get("prompt_tokens") or 0),
        output_token_count=int(usage.get("completion_tokens") or 0),
        total_token_count=int(usage.get("total_tokens") or 0),
    )
