"""In-memory storage backend for tests and local runs."""

from __future__ import annotations

import threading

from agent_runtime.core.models import TaskHistory, format_task_key
from agent_runtime.storage.models import AgentMeta, LatestTask


class InMemoryTaskStorage:
    """Dict-backed storage. Records are copied on the way in and out."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._agents: dict[str, AgentMeta] = {}
        self._histories: dict[tuple[str, str, str], TaskHistory] = {}
        self._latest: dict[tuple[str, str], LatestTask] = {}

    def migrate(self) -> None:
        return None

    def get_agent(self, name: str) -> AgentMeta | None:
        with self._lock:
            meta = self._agents.get(name)
        return meta.model_copy(deep=True) if meta else None

    def upsert_agent(self, meta: AgentMeta) -> AgentMeta:
        with self._lock:
            self._agents[meta.name] = meta.model_copy(deep=True)
        return meta

    def get_task_history(
        self, session_key: str, agent_name: str, task_id: int
    ) -> TaskHistory | None:
        with self._lock:
            history = self._histories.get((session_key, agent_name, format_task_key(task_id)))
        # Round-trip through the record shape so previous-task links never leak.
        return TaskHistory.model_validate(history.to_record()) if history else None

    def save_task_history(
        self, session_key: str, agent_name: str, history: TaskHistory
    ) -> None:
        record = TaskHistory.model_validate(history.to_record())
        with self._lock:
            self._histories[(session_key, agent_name, format_task_key(record.task_id))] = record

    def get_latest_task(self, session_key: str, agent_name: str) -> LatestTask | None:
        with self._lock:
            latest = self._latest.get((session_key, agent_name))
        return latest.model_copy() if latest else None

    def save_latest_task(
        self, session_key: str, agent_name: str, latest: LatestTask
    ) -> None:
        with self._lock:
            self._latest[(session_key, agent_name)] = latest.model_copy()
