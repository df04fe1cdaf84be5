"""Storage backends and models."""

from agent_runtime.storage.base import TaskStorage
from agent_runtime.storage.memory import InMemoryTaskStorage
from agent_runtime.storage.models import AgentMeta, LatestTask
from agent_runtime.storage.postgres import PostgresTaskStorage

__all__ = [
    "AgentMeta",
    "InMemoryTaskStorage",
    "LatestTask",
    "PostgresTaskStorage",
    "TaskStorage",
]
