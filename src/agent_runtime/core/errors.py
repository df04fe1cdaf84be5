"""Error taxonomy for agent runs."""

from __future__ import annotations

PUBLIC_ERROR_MESSAGE = "error processing your request, please try again later"


class AgentRuntimeError(Exception):
    """Base class for all runtime failures."""


class ConfigurationError(AgentRuntimeError):
    """Agent construction referenced an unknown or invalid capability."""


class GenerationError(AgentRuntimeError):
    """The model backend failed to produce a reply."""


class ProtocolError(AgentRuntimeError):
    """The model reply broke the response/status tag contract.

    ``str(exc)`` is always the stable public message; the reason is kept in
    ``detail`` for logs.
    """

    def __init__(self, detail: str) -> None:
        super().__init__(PUBLIC_ERROR_MESSAGE)
        self.detail = detail


class SerializationError(AgentRuntimeError):
    """A tool call carried parameters that are not a JSON object."""


class MaxTurnsExceededError(AgentRuntimeError):
    """The run needed more model rounds than allowed."""

    def __init__(self, max_turns: int) -> None:
        super().__init__(f"exceeded max turns ({max_turns})")
        self.max_turns = max_turns


class RunCancelledError(AgentRuntimeError):
    """The caller cancelled the run."""


class ToolExecutionError(AgentRuntimeError):
    """A tool could not be executed. Folded into the tool result text."""


class AgentExecutionError(AgentRuntimeError):
    """A delegated agent could not be executed. Folded into the agent result text."""


class InvalidRequestError(AgentRuntimeError):
    """A service request is missing required fields."""


class AgentNotFoundError(AgentRuntimeError):
    """No agent definition is stored under the requested name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"agent {name} not found")
        self.name = name
