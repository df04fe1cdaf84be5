"""Storage records shared by the service and persistence backends."""

from pydantic import BaseModel, ConfigDict, Field

from agent_runtime.core.models import AgentDescriptor, ToolDescriptor

LATEST_TASK_ID = "latest"


class AgentMeta(BaseModel):
    """Stored definition of an installable agent."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    description: str = ""
    context: str = ""
    tools: list[ToolDescriptor] = Field(default_factory=list)
    agents: list[AgentDescriptor] = Field(default_factory=list)


class LatestTask(BaseModel):
    """Pointer to the task a session should resume or roll over from."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = LATEST_TASK_ID
    current_task_id: int = Field(default=0, alias="currentTaskId")
    last_completed_task_id: int = Field(default=0, alias="lastCompletedTaskId")

    def next_task_id(self) -> int:
        return max(self.current_task_id, self.last_completed_task_id) + 1
