"""Gemini generateContent backend."""

from __future__ import annotations

from typing import Any, Sequence
from urllib import parse

from agent_runtime.core.context import RunContext
from agent_runtime.core.models import ModelInput, ModelOutput, Stats, Turn
from agent_runtime.llm.base import post_json, request_with_retry

DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

# Gemini calls the assistant role "model".
ROLE_MAP = {"user": "user", "assistant": "model"}


class GeminiChatModel:
    def __init__(
        self,
        *,
        api_key: str,
        model: str = "gemini-2.0-flash",
        base_url: str = DEFAULT_BASE_URL,
        timeout_s: float = 60.0,
        max_retries: int = 1,
        backoff_s: float = 0.5,
    ) -> None:
        if not api_key:
            raise RuntimeError("GEMINI_API_KEY is missing")
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
        body = build_request_body(system_prompt, history, payload)
        url = f"{self.base_url}/models/{parse.quote(self.model)}:generateContent"
        response_json = request_with_retry(
            lambda: post_json(
                url,
                body,
                headers={"x-goog-api-key": self.api_key},
                timeout_s=self.timeout_s,
            ),
            ctx=ctx,
            max_retries=self.max_retries,
            backoff_s=self.backoff_s,
            model=self.model,
        )
        return ModelOutput(text=extract_text(response_json), stats=extract_stats(response_json))


def build_request_body(
    system_prompt: str,
    history: Sequence[Turn],
    payload: ModelInput,
) -> dict[str, Any]:
    contents: list[dict[str, Any]] = [
        {"role": ROLE_MAP[turn.role], "parts": [{"text": turn.content}]}
        for turn in history
        if turn.role in ROLE_MAP
    ]

    parts: list[dict[str, Any]] = []
    if payload.text:
        parts.append({"text": payload.text})
    for image in payload.images:
        if image.data:
            parts.append({"inlineData": {"mimeType": "image/png", "data": image.data}})
        elif image.path:
            parts.append({"fileData": {"fileUri": image.path}})
    if parts:
        contents.append({"role": "user", "parts": parts})

    body: dict[str, Any] = {"contents": contents}
    if system_prompt:
        body["systemInstruction"] = {"parts": [{"text": system_prompt}]}
    return body


def extract_text(response_json: dict[str, Any]) -> str:
    candidates = response_json.get("candidates", [])
    if not candidates:
        raise RuntimeError("Gemini response did not contain candidates")
    parts = candidates[0].get("content", {}).get("parts", [])
    return "".join(
        part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)
    )


def extract_stats(response_json: dict[str, Any]) -> Stats:
    usage = response_json.get("usageMetadata")
    if not isinstance(usage, dict):
        return Stats()
    return Stats(
        input_token_count=int(usage.get("promptTokenCount") or 0),
        output_token_count=int(usage.get("candidatesTokenCount") or 0),
        total_token_count=int(usage.get("totalTokenCount") or 0),
    )
