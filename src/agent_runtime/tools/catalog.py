"""Per-agent catalog of callable tools and sub-agents."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Callable, Literal, Union

from agent_runtime.core.context import RunContext
from agent_runtime.core.errors import ConfigurationError, RunCancelledError
from agent_runtime.core.models import (
    AgentCall,
    AgentDescriptor,
    AgentResult,
    ModelInput,
    ModelOutput,
    TaskHistory,
    ToolCall,
    ToolDescriptor,
    ToolResult,
)
from agent_runtime.tools.gateway import InbuiltToolExecutor, RemoteToolExecutor, ToolExecutor
from agent_runtime.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

AgentHandler = Callable[[RunContext, str, TaskHistory, ModelInput], ModelOutput]


class AgentExecutor:
    """A sub-agent entry bound to the handler that actually runs agents."""

    def __init__(self, descriptor: AgentDescriptor, handler: AgentHandler) -> None:
        self._descriptor = descriptor
        self._handler = handler

    @property
    def name(self) -> str:
        return self._descriptor.name

    def descriptor(self) -> AgentDescriptor:
        return self._descriptor

    def execute(self, ctx: RunContext, history: TaskHistory, payload: ModelInput) -> ModelOutput:
        return self._handler(ctx, self.name, history, payload)


@dataclass(frozen=True)
class ToolCapability:
    executor: ToolExecutor
    kind: Literal["tool"] = "tool"

    def execute(self, ctx: RunContext, call: ToolCall) -> ToolResult:
        try:
            output = self.executor.execute(ctx, json.dumps(call.parameters))
        except RunCancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.warning("Tool call failed tool=%s reason=%s", call.name, exc)
            output = str(exc)
        return ToolResult(name=call.name, output=output)


@dataclass(frozen=True)
class AgentCapability:
    executor: AgentExecutor
    kind: Literal["agent"] = "agent"

    def execute(
        self,
        ctx: RunContext,
        call: AgentCall,
        history: TaskHistory,
        payload: ModelInput,
    ) -> AgentResult:
        try:
            output = self.executor.execute(ctx.child(), history, payload).text
        except RunCancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.warning("Agent call failed agent=%s reason=%s", call.name, exc)
            output = str(exc)
        return AgentResult(name=call.name, output=output)


Capability = Union[ToolCapability, AgentCapability]


class CapabilityCatalog:
    """Tools and sub-agents one agent may call, keyed by name."""

    def __init__(
        self,
        registry: ToolRegistry,
        agent_handler: AgentHandler | None = None,
        *,
        tool_timeout_s: float | None = None,
    ) -> None:
        self.registry = registry
        self.agent_handler = agent_handler
        self.tool_timeout_s = tool_timeout_s
        self._tools: dict[str, ToolCapability] = {}
        self._agents: dict[str, AgentCapability] = {}

    def register_tool(self, name: str) -> ToolDescriptor:
        """Register an inbuilt tool from the registry."""
        spec = self.registry.get(name)
        if spec is None:
            raise ConfigurationError(f"tool {name} not found")
        executor = InbuiltToolExecutor(spec, timeout_s=self.tool_timeout_s)
        self._tools[name] = ToolCapability(executor=executor)
        return executor.descriptor()

    def register_tool_descriptor(self, descriptor: ToolDescriptor) -> ToolDescriptor:
        if descriptor.inbuilt:
            return self.register_tool(descriptor.name)
        self._tools[descriptor.name] = ToolCapability(executor=RemoteToolExecutor(descriptor))
        return descriptor

    def register_agent(self, descriptor: AgentDescriptor) -> AgentDescriptor:
        if self.agent_handler is None:
            raise ConfigurationError(
                f"agent {descriptor.name} cannot be registered without an agent handler"
            )
        executor = AgentExecutor(descriptor, self.agent_handler)
        self._agents[descriptor.name] = AgentCapability(executor=executor)
        return descriptor

    def list_tool_descriptors(self) -> list[ToolDescriptor]:
        return [capability.executor.descriptor() for capability in self._tools.values()]

    def list_agent_descriptors(self) -> list[AgentDescriptor]:
        return [capability.executor.descriptor() for capability in self._agents.values()]

    def get_tool(self, name: str) -> ToolExecutor | None:
        capability = self._tools.get(name)
        return capability.executor if capability else None

    def get_agent(self, name: str) -> AgentExecutor | None:
        capability = self._agents.get(name)
        return capability.executor if capability else None

    def resolve(self, call: ToolCall | AgentCall) -> Capability | None:
        if isinstance(call, ToolCall):
            return self._tools.get(call.name)
        return self._agents.get(call.name)

    def dispatch(
        self,
        ctx: RunContext,
        call: ToolCall | AgentCall,
        history: TaskHistory,
        session_key: str = "",
    ) -> ToolResult | AgentResult:
        """Run one tool or agent call; failures come back as result text."""
        if isinstance(call, ToolCall):
            logger.info("Tool call tool=%s parameters=%s", call.name, call.parameters)
            capability = self.resolve(call)
            if capability is None:
                return ToolResult(name=call.name, output=f"tool {call.name} not found")
            return capability.execute(ctx, call)

        logger.info("Agent call agent=%s input=%r", call.name, call.input)
        sub_history = history.sub_history(call.name)
        capability = self.resolve(call)
        if capability is None:
            return AgentResult(name=call.name, output=f"agent {call.name} not found")
        payload = ModelInput(
            session_key=session_key,
            child_session_key=history.id,
            text=call.input,
        )
        return capability.execute(ctx, call, sub_history, payload)
