"""Chat model contract consumed by the agent loop."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Protocol, Sequence
from urllib import error, request

from agent_runtime.core.context import RunContext
from agent_runtime.core.models import ModelInput, ModelOutput, Turn

logger = logging.getLogger(__name__)


class ChatModel(Protocol):
    """Produce the next assistant message for a transcript."""

    def generate(
        self,
        ctx: RunContext,
        system_prompt: str,
        history: Sequence[Turn],
        payload: ModelInput,
    ) -> ModelOutput: ...


def post_json(
    url: str,
    body: dict[str, Any],
    *,
    headers: dict[str, str],
    timeout_s: float,
) -> dict[str, Any]:
    req = request.Request(
        url=url,
        data=json.dumps(body).encode("utf-8"),
        method="POST",
        headers={"Content-Type": "application/json", **headers},
    )
    try:
        with request.urlopen(req, timeout=timeout_s) as response:
            raw = response.read().decode("utf-8")
    except error.HTTPError as exc:
        message = exc.read().decode("utf-8", errors="replace")
        raise RuntimeError(
            f"LLM request failed with status {exc.code}: {message[:400]}"
        ) from exc
    except error.URLError as exc:
        raise RuntimeError(f"LLM request failed: {exc.reason}") from exc

    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise RuntimeError("LLM returned non-JSON response") from exc


def request_with_retry(
    send: Callable[[], dict[str, Any]],
    *,
    ctx: RunContext,
    max_retries: int,
    backoff_s: float,
    model: str,
) -> dict[str, Any]:
    last_error: Exception | None = None
    for attempt in range(max_retries + 1):
        ctx.raise_if_cancelled()
        try:
            return send()
        except Exception as exc:  # noqa: BLE001
            last_error = exc
            logger.warning(
                "LLM request failed attempt=%d/%d model=%s reason=%s",
                attempt + 1,
                max_retries + 1,
                model,
                exc,
            )
            if attempt < max_retries and backoff_s > 0:
                time.sleep(backoff_s)

    if last_error is None:
        raise RuntimeError("LLM request failed with unknown error")
    raise last_error
