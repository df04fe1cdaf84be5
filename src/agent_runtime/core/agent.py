"""Agent turn loop.

One ``Agent.run`` call drives a LangGraph state machine::

    await_model -> handle_tools  -> await_model
                -> handle_agents -> await_model
                -> correct       -> await_model
                -> finalize      -> END

``await_model`` calls the model, runs every tool call and then every agent
call found in the reply (sequentially, in the order they appear) and records
the reply. Tool results are fed back before agent results. A reply with no
calls must carry ``<response>`` and ``<task_status>`` tags to finish the run.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Any, TypedDict

from langgraph.graph import END, StateGraph

from agent_runtime.core.context import RunContext
from agent_runtime.core.errors import (
    GenerationError,
    MaxTurnsExceededError,
    ProtocolError,
    RunCancelledError,
)
from agent_runtime.core.grammar import (
    AGENT_RESULT_TAG,
    RESPONSE_TAG,
    TASK_STATUS_TAG,
    TOOL_RESULT_TAG,
    extract_agent_calls,
    extract_tag_content,
    extract_tool_calls,
    find_tag_contents,
    wrap_tag,
)
from agent_runtime.core.models import (
    TASK_STATUSES,
    AgentDescriptor,
    AgentResult,
    ModelInput,
    ModelOutput,
    TaskHistory,
    ToolDescriptor,
    ToolResult,
)
from agent_runtime.core.prompts import build_system_prompt, wrap_user_input
from agent_runtime.llm.base import ChatModel
from agent_runtime.tools.catalog import AgentHandler, CapabilityCatalog
from agent_runtime.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

CORRECTION_PROMPT = (
    "it looks like the response tag was not properly completed. "
    "correct the error silently."
)
DEFAULT_MAX_TURNS = 25
DEFAULT_MAX_CORRECTIONS = 3


class LoopState(TypedDict, total=False):
    ctx: RunContext
    system_prompt: str
    session_key: str
    history: TaskHistory
    input: ModelInput
    output: ModelOutput
    tool_results: list[ToolResult]
    agent_results: list[AgentResult]
    turns: int
    corrections: int
    final_output: ModelOutput


class Agent:
    """A model-backed agent that can call tools and delegate to sub-agents."""

    def __init__(
        self,
        *,
        name: str,
        model: ChatModel,
        registry: ToolRegistry,
        description: str = "",
        context: str = "",
        tools: Sequence[str | ToolDescriptor] = (),
        agents: Sequence[AgentDescriptor] = (),
        agent_handler: AgentHandler | None = None,
        max_turns: int = DEFAULT_MAX_TURNS,
        max_corrections: int = DEFAULT_MAX_CORRECTIONS,
        tool_timeout_s: float | None = None,
    ) -> None:
        self.name = name
        self.description = description
        self.context = context
        self.model = model
        self.max_turns = max_turns
        self.max_corrections = max_corrections
        self.catalog = CapabilityCatalog(
            registry, agent_handler, tool_timeout_s=tool_timeout_s
        )
        for tool in tools:
            self.register_tool(tool)
        for agent in agents:
            self.register_agent(agent)
        self._graph = self._build_graph()

    def register_tool(self, tool: str | ToolDescriptor) -> ToolDescriptor:
        if isinstance(tool, str):
            return self.catalog.register_tool(tool)
        return self.catalog.register_tool_descriptor(tool)

    def register_agent(self, descriptor: AgentDescriptor) -> AgentDescriptor:
        return self.catalog.register_agent(descriptor)

    def system_prompt(self, labels: dict[str, str] | None = None) -> str:
        return build_system_prompt(
            self.context,
            tools=self.catalog.list_tool_descriptors(),
            agents=self.catalog.list_agent_descriptors(),
            labels=labels,
        )

    def run(self, ctx: RunContext, history: TaskHistory, payload: ModelInput) -> ModelOutput:
        """Drive the task until the model gives a final tagged response.

        Mutates ``history`` in place; the caller persists it. Every failure
        propagates; tool and agent failures never reach here because they are
        fed back to the model as result text.
        """
        first_input = payload.model_copy(update={"text": wrap_user_input(payload.text)})
        state: LoopState = {
            "ctx": ctx,
            "system_prompt": self.system_prompt(payload.labels),
            "session_key": payload.session_key or ctx.session_key,
            "history": history,
            "input": first_input,
            "turns": 0,
            "corrections": 0,
        }
        result = self._graph.invoke(
            state, config={"recursion_limit": 2 * self.max_turns + 4}
        )
        output: ModelOutput = result["final_output"]
        logger.info(
            "Task finished agent=%s task=%s status=%s turns=%d total_tokens=%d",
            self.name,
            history.id,
            history.status,
            result.get("turns", 0),
            output.stats.total_token_count,
        )
        return output

    def _build_graph(self):
        graph = StateGraph(LoopState)

        graph.add_node("await_model", self._await_model)
        graph.add_node("handle_tools", self._handle_tools)
        graph.add_node("handle_agents", self._handle_agents)
        graph.add_node("correct", self._correct)
        graph.add_node("finalize", self._finalize)

        graph.set_entry_point("await_model")
        graph.add_conditional_edges(
            "await_model",
            _route,
            {
                "tools": "handle_tools",
                "agents": "handle_agents",
                "correct": "correct",
                "finalize": "finalize",
            },
        )
        graph.add_edge("handle_tools", "await_model")
        graph.add_edge("handle_agents", "await_model")
        graph.add_edge("correct", "await_model")
        graph.add_edge("finalize", END)

        return graph.compile()

    def _await_model(self, state: LoopState) -> dict[str, Any]:
        ctx = state["ctx"]
        history = state["history"]
        payload = state["input"]
        turns = state.get("turns", 0)
        if turns >= self.max_turns:
            raise MaxTurnsExceededError(self.max_turns)

        ctx.raise_if_cancelled()
        try:
            output = self.model.generate(ctx, state["system_prompt"], history.transcript(), payload)
        except (RunCancelledError, GenerationError):
            raise
        except Exception as exc:  # noqa: BLE001
            raise GenerationError(f"model generation failed: {exc}") from exc

        if payload.text:
            history.append("user", payload.text)

        session_key = state.get("session_key", "")
        tool_results = [
            self.catalog.dispatch(ctx, call, history, session_key)
            for call in extract_tool_calls(output.text)
        ]
        agent_results = [
            self.catalog.dispatch(ctx, call, history, session_key)
            for call in extract_agent_calls(output.text)
        ]

        history.append("assistant", output.text)
        return {
            "output": output,
            "tool_results": tool_results,
            "agent_results": agent_results,
            "turns": turns + 1,
        }

    def _handle_tools(self, state: LoopState) -> dict[str, Any]:
        return self._feed_back(state, TOOL_RESULT_TAG, state["tool_results"])

    def _handle_agents(self, state: LoopState) -> dict[str, Any]:
        return self._feed_back(state, AGENT_RESULT_TAG, state["agent_results"])

    def _feed_back(
        self,
        state: LoopState,
        tag: str,
        results: Sequence[ToolResult | AgentResult],
    ) -> dict[str, Any]:
        body = json.dumps([result.model_dump() for result in results], ensure_ascii=False)
        state["history"].append("user", wrap_tag(tag, body))
        return {"input": ModelInput(session_key=state.get("session_key", ""))}

    def _correct(self, state: LoopState) -> dict[str, Any]:
        corrections = state.get("corrections", 0)
        if corrections >= self.max_corrections:
            raise ProtocolError(
                f"response tag still missing after {corrections} corrections"
            )
        logger.warning(
            "Response tag missing agent=%s task=%s correction=%d",
            self.name,
            state["history"].id,
            corrections + 1,
        )
        return {
            "input": ModelInput(
                session_key=state.get("session_key", ""),
                text=CORRECTION_PROMPT,
            ),
            "corrections": corrections + 1,
        }

    def _finalize(self, state: LoopState) -> dict[str, Any]:
        history = state["history"]
        output = state["output"]
        text = output.text.strip()

        response = extract_tag_content(text, RESPONSE_TAG).strip()
        statuses = find_tag_contents(text, TASK_STATUS_TAG)
        if not statuses:
            logger.warning("Task status tag missing agent=%s task=%s", self.name, history.id)
            raise ProtocolError("task_status tag missing from response")

        status = statuses[-1].strip()
        if status not in TASK_STATUSES:
            logger.warning(
                "Unknown task status agent=%s task=%s status=%r", self.name, history.id, status
            )
            raise ProtocolError(f"unknown task status {status!r}")

        logger.info("Task status agent=%s task=%s status=%s", self.name, history.id, status)
        history.status = status
        history.stats = output.stats
        return {"final_output": ModelOutput(text=response, stats=output.stats)}


def _route(state: LoopState) -> str:
    if state.get("tool_results"):
        return "tools"
    if state.get("agent_results"):
        return "agents"
    if not find_tag_contents(state["output"].text.strip(), RESPONSE_TAG):
        return "correct"
    return "finalize"


__all__ = ["Agent", "CORRECTION_PROMPT", "LoopState"]
