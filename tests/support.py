"""Shared test doubles for the agent loop, service and API tests."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Union

from agent_runtime.core.context import RunContext
from agent_runtime.core.models import ModelInput, ModelOutput, Stats, Turn

Reply = Union[str, Exception, Callable[[list[Turn]], str]]


class ScriptedChatModel:
    """Replays canned replies and records every request.

    A reply may be text, an exception to raise, or a callable that builds the
    text from the transcript it was sent.
    """

    def __init__(self, replies: Sequence[Reply] = ()) -> None:
        self.replies: list[Reply] = list(replies)
        self.calls: list[dict] = []

    def queue(self, *replies: Reply) -> None:
        self.replies.extend(replies)

    def generate(
        self,
        ctx: RunContext,
        system_prompt: str,
        history: Sequence[Turn],
        payload: ModelInput,
    ) -> ModelOutput:
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "history": list(history),
                "input": payload.model_copy(deep=True),
                "depth": ctx.depth,
            }
        )
        if not self.replies:
            raise AssertionError("scripted model ran out of replies")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            reply = reply(list(history))
        return ModelOutput(
            text=reply,
            stats=Stats(input_token_count=10, output_token_count=5, total_token_count=15),
        )


def final_reply(text: str, status: str = "completed") -> str:
    return (
        "<thinking>done</thinking>\n"
        f"<response>{text}</response>\n"
        f"<task_status>{status}</task_status>"
    )


def tool_call_reply(name: str, parameters: str = "{}") -> str:
    return (
        "<thinking>need a tool</thinking>\n"
        f"<tool_call><tool_name>{name}</tool_name>"
        f"<parameters>{parameters}</parameters></tool_call>"
    )


def agent_call_reply(name: str, text: str) -> str:
    return (
        f"<agent_call><agent_name>{name}</agent_name>"
        f"<input>{text}</input></agent_call>"
    )
