"""Tool registry, executors and the per-agent capability catalog."""

from agent_runtime.tools.catalog import (
    AgentCapability,
    AgentExecutor,
    AgentHandler,
    CapabilityCatalog,
    ToolCapability,
)
from agent_runtime.tools.gateway import InbuiltToolExecutor, RemoteToolExecutor, ToolExecutor
from agent_runtime.tools.registry import ToolRegistry, ToolSpec, build_registry, list_tools

__all__ = [
    "AgentCapability",
    "AgentExecutor",
    "AgentHandler",
    "CapabilityCatalog",
    "InbuiltToolExecutor",
    "RemoteToolExecutor",
    "ToolCapability",
    "ToolExecutor",
    "ToolRegistry",
    "ToolSpec",
    "build_registry",
    "list_tools",
]
