"""Pydantic models for transcripts, task histories and capability calls."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

Role = Literal["user", "assistant"]

STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"
TASK_STATUSES = (STATUS_IN_PROGRESS, STATUS_COMPLETED)


def format_task_key(task_id: int) -> str:
    """Render a task id as the fixed-width key used by storage."""
    return f"{task_id:019d}"


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


class Turn(FrozenModel):
    """One message in a transcript."""

    role: Role
    content: str


class Stats(BaseModel):
    """Token usage of a single model call."""

    input_token_count: int = 0
    output_token_count: int = 0
    total_token_count: int = 0


class Image(BaseModel):
    data: str = ""
    path: str = ""


class ModelInput(BaseModel):
    session_key: str = ""
    child_session_key: str = ""
    text: str = ""
    images: list[Image] = Field(default_factory=list)
    labels: dict[str, str] = Field(default_factory=dict)


class ModelOutput(BaseModel):
    text: str = ""
    stats: Stats = Field(default_factory=Stats)


class ToolDescriptor(FrozenModel):
    """Tool advertised to the model. Serialized verbatim into prompts."""

    name: str
    service_name: str = Field(default="", alias="serviceName")
    description: str = ""
    parameters: dict[str, Any] | None = None
    inbuilt: bool = True


class AgentDescriptor(FrozenModel):
    """Sub-agent advertised to the model. Serialized verbatim into prompts."""

    name: str
    description: str = ""


class ToolCall(FrozenModel):
    name: str
    parameters: dict[str, Any] = Field(default_factory=dict)


class AgentCall(FrozenModel):
    name: str
    input: str = ""


class ToolResult(FrozenModel):
    name: str
    output: str


class AgentResult(FrozenModel):
    name: str
    output: str


class TaskHistory(BaseModel):
    """Conversation state for one task attempt.

    ``contents`` only grows. ``agents_history`` holds one isolated sub-history
    per delegated agent. The previous task is attached once at load time and
    is never persisted with this record.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    task_id: int = Field(default=0, alias="taskId")
    contents: list[Turn] = Field(default_factory=list)
    status: str = ""
    stats: Stats = Field(default_factory=Stats)
    agents_history: dict[str, TaskHistory] = Field(
        default_factory=dict, alias="agentsHistory"
    )

    _previous_task: TaskHistory | None = PrivateAttr(default=None)

    @classmethod
    def new(cls, task_id: int) -> TaskHistory:
        return cls(id=format_task_key(task_id), task_id=task_id, status=STATUS_IN_PROGRESS)

    @property
    def previous_task(self) -> TaskHistory | None:
        return self._previous_task

    def set_previous_task(self, previous_task: TaskHistory | None) -> None:
        if self._previous_task is not None and self._previous_task is not previous_task:
            raise ValueError(f"previous task already set for task {self.id}")
        self._previous_task = previous_task

    def append(self, role: Role, content: str) -> Turn:
        turn = Turn(role=role, content=content)
        self.contents.append(turn)
        return turn

    def transcript(self) -> list[Turn]:
        """Previous task turns followed by this task's turns."""
        turns: list[Turn] = []
        if self._previous_task is not None:
            turns.extend(self._previous_task.contents)
        turns.extend(self.contents)
        return turns

    def sub_history(self, agent_name: str) -> TaskHistory:
        """Get or lazily create the history of a delegated agent."""
        history = self.agents_history.get(agent_name)
        if history is None:
            history = TaskHistory()
            self.agents_history[agent_name] = history
        return history

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


TaskHistory.model_rebuild()
