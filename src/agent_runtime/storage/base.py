"""Storage interface for agent definitions and session task histories."""

from __future__ import annotations

from typing import Protocol

from agent_runtime.core.models import TaskHistory
from agent_runtime.storage.models import AgentMeta, LatestTask


class TaskStorage(Protocol):
    def migrate(self) -> None: ...

    def get_agent(self, name: str) -> AgentMeta | None: ...

    def upsert_agent(self, meta: AgentMeta) -> AgentMeta: ...

    def get_task_history(
        self, session_key: str, agent_name: str, task_id: int
    ) -> TaskHistory | None: ...

    def save_task_history(
        self, session_key: str, agent_name: str, history: TaskHistory
    ) -> None: ...

    def get_latest_task(self, session_key: str, agent_name: str) -> LatestTask | None: ...

    def save_latest_task(
        self, session_key: str, agent_name: str, latest: LatestTask
    ) -> None: ...
