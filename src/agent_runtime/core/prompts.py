"""System prompt templates and assembly.

The tag names used here are the same ones ``agent_runtime.core.grammar``
parses; changing one side without the other breaks the agent loop.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence

from agent_runtime.core.grammar import USER_INPUT_TAG, wrap_tag
from agent_runtime.core.models import AgentDescriptor, ToolDescriptor

AGENT_PROMPT_TEMPLATE = """
You are an AI assistant that works through a task with the user and keeps track of
whether the task is finished.

The user's message is delivered between <user_input></user_input> tags.

Your agent specific instructions:
<agent_system_context>
{{agent_system_context}}
</agent_system_context>

To answer:

1. Read the user input inside the <user_input> tags.
2. Think through the request step by step and keep that reasoning inside
   <thinking></thinking> tags. It is never shown to the user.
3. Write your reply for the user.
4. Decide the task status:
   - "in_progress": the task needs more interaction.
   - "completed": the task is done and needs nothing further.
5. Output exactly one response block and exactly one status block:

<response>
[your reply to the user]
</response>

<task_status>[either in_progress or completed]</task_status>

Example:

<response>
Sure, I can help with that. Based on what you told me, here is my suggestion...
</response>

<task_status>in_progress</task_status>

Always include both the <response> and the <task_status> tags. The status decides
when the conversation history is rolled over to a new task.
"""

TOOLS_PROMPT_TEMPLATE = """
You can use the tools and agents listed below. Read their descriptions and
parameter schemas before using them.
<tools>
{{tools}}
</tools>
Tool usage:

1. Pick the tool that best fits the request.
2. Provide every required parameter in the documented format.
3. If a required parameter is missing, ask the user for it.
4. Call a tool with exactly this format:

<tools>
<tool_call>
  <tool_name>name_of_the_tool</tool_name>
  <parameters>
    {"param1": "value1", "param2": "value2"}
  </parameters>
</tool_call>
</tools>

5. Tool output comes back inside <tool_result></tool_result> tags. Use it in your reply.
6. If a tool call fails, explain the problem and suggest another approach.
7. You may call several tools in one reply when needed.

<agents>
{{agents}}
</agents>
Agent usage:

1. Decide whether a specialised agent should handle the task or you can answer directly.
2. If you delegate, choose the most suitable agent from the list above.
3. Call an agent with exactly this format:

<agents>
<agent_call>
  <agent_name>name_of_the_agent</agent_name>
  <input>
    natural language input for the agent
  </input>
</agent_call>
</agents>

4. Agent replies come back inside <agent_result></agent_result> tags. If the agent
   asks a question you can answer, answer it in your next call to that agent.
"""


def replace_labels(template: str, labels: Mapping[str, str]) -> str:
    """Substitute ``{{key}}`` placeholders."""
    for key, value in labels.items():
        template = template.replace("{{" + key + "}}", value)
    return template


def build_tools_prompt(
    tools: Sequence[ToolDescriptor],
    agents: Sequence[AgentDescriptor],
) -> str:
    tools_json = json.dumps([tool.model_dump(mode="json", by_alias=True) for tool in tools])
    agents_json = json.dumps([agent.model_dump(mode="json", by_alias=True) for agent in agents])
    return replace_labels(TOOLS_PROMPT_TEMPLATE, {"tools": tools_json, "agents": agents_json})


def build_system_prompt(
    context: str,
    *,
    tools: Sequence[ToolDescriptor] = (),
    agents: Sequence[AgentDescriptor] = (),
    labels: Mapping[str, str] | None = None,
) -> str:
    agent_context = replace_labels(context, labels or {})
    prompt = replace_labels(AGENT_PROMPT_TEMPLATE, {"agent_system_context": agent_context})
    tools_prompt = build_tools_prompt(tools, agents) if tools or agents else ""
    return prompt + "\n" + tools_prompt


def wrap_user_input(text: str) -> str:
    return wrap_tag(USER_INPUT_TAG, text)
