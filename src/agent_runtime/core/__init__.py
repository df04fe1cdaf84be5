"""Agent loop, call grammar, prompts and task history."""

from agent_runtime.core.context import RunContext
from agent_runtime.core.errors import (
    AgentExecutionError,
    AgentNotFoundError,
    AgentRuntimeError,
    ConfigurationError,
    GenerationError,
    InvalidRequestError,
    MaxTurnsExceededError,
    ProtocolError,
    RunCancelledError,
    SerializationError,
    ToolExecutionError,
)
from agent_runtime.core.models import (
    AgentDescriptor,
    ModelInput,
    ModelOutput,
    Stats,
    TaskHistory,
    ToolDescriptor,
    Turn,
)

__all__ = [
    "AgentDescriptor",
    "AgentExecutionError",
    "AgentNotFoundError",
    "AgentRuntimeError",
    "ConfigurationError",
    "GenerationError",
    "InvalidRequestError",
    "MaxTurnsExceededError",
    "ModelInput",
    "ModelOutput",
    "ProtocolError",
    "RunCancelledError",
    "RunContext",
    "SerializationError",
    "Stats",
    "TaskHistory",
    "ToolDescriptor",
    "ToolExecutionError",
    "Turn",
]
