"""Parser for the tag grammar models use to call tools, delegate and answer.

Call grammar::

    <tool_call><tool_name>NAME</tool_name><parameters>{...}</parameters></tool_call>
    <agent_call><agent_name>NAME</agent_name><input>free text</input></agent_call>

Whitespace is allowed between tags. Payloads may span several lines, so a
pretty-printed parameters object is extracted the same way as a one-line one.
Names never contain a tag and a payload ends at its first closing tag, so a
malformed call cannot swallow the well-formed call after it.

Terminal tags (``<response>``, ``<task_status>``) are read with a plain scan
rather than an XML parser: the first opening tag is paired with the first
closing tag after it (nesting is not tracked), scanning resumes after the
closing tag, and repeated captures are joined with a newline.
"""

from __future__ import annotations

import json
import re

from agent_runtime.core.errors import SerializationError
from agent_runtime.core.models import AgentCall, ToolCall

TOOL_CALL_PATTERN = re.compile(
    r"<tool_call>\s*<tool_name>([^<]*?)</tool_name>\s*"
    r"<parameters>\s*((?:(?!</parameters>).)*?)\s*</parameters>\s*</tool_call>",
    re.DOTALL,
)
AGENT_CALL_PATTERN = re.compile(
    r"<agent_call>\s*<agent_name>([^<]*?)</agent_name>\s*"
    r"<input>\s*((?:(?!</input>).)*?)\s*</input>\s*</agent_call>",
    re.DOTALL,
)

RESPONSE_TAG = "response"
TASK_STATUS_TAG = "task_status"
USER_INPUT_TAG = "user_input"
TOOL_RESULT_TAG = "tool_result"
AGENT_RESULT_TAG = "agent_result"


def extract_tool_calls(text: str) -> list[ToolCall]:
    """Return every tool call in ``text``, left to right.

    Raises ``SerializationError`` if any call's parameters are not a JSON
    object; no partial list is returned in that case.
    """
    calls: list[ToolCall] = []
    for match in TOOL_CALL_PATTERN.finditer(text):
        name = match.group(1).strip()
        raw_params = match.group(2).strip()
        try:
            params = json.loads(raw_params)
        except json.JSONDecodeError as exc:
            raise SerializationError(
                f"failed to parse parameters for tool {name}: {exc}"
            ) from exc
        if not isinstance(params, dict):
            raise SerializationError(
                f"failed to parse parameters for tool {name}: expected a JSON object"
            )
        calls.append(ToolCall(name=name, parameters=params))
    return calls


def extract_agent_calls(text: str) -> list[AgentCall]:
    return [
        AgentCall(name=match.group(1).strip(), input=match.group(2).strip())
        for match in AGENT_CALL_PATTERN.finditer(text)
    ]


def find_tag_contents(text: str, tag: str) -> list[str]:
    open_tag = f"<{tag}>"
    close_tag = f"</{tag}>"
    captures: list[str] = []
    remaining = text
    while True:
        start = remaining.find(open_tag)
        if start == -1:
            break
        end = remaining.find(close_tag, start)
        if end == -1:
            break
        captures.append(remaining[start + len(open_tag) : end])
        remaining = remaining[end + len(close_tag) :]
    return captures


def extract_tag_content(text: str, tag: str) -> str:
    """Joined contents of every ``<tag>...</tag>`` pair; empty when absent."""
    return "\n".join(find_tag_contents(text, tag))


def wrap_tag(tag: str, body: str) -> str:
    return f"<{tag}>{body}</{tag}>"


def format_tool_call(call: ToolCall) -> str:
    """Render a tool call in the grammar the parser accepts."""
    return (
        f"<tool_call><tool_name>{call.name}</tool_name>"
        f"<parameters>{json.dumps(call.parameters)}</parameters></tool_call>"
    )


def format_agent_call(call: AgentCall) -> str:
    return (
        f"<agent_call><agent_name>{call.name}</agent_name>"
        f"<input>{call.input}</input></agent_call>"
    )
