from __future__ import annotations

import pytest

from agent_runtime.core.context import RunContext
from agent_runtime.storage.memory import InMemoryTaskStorage
from agent_runtime.tools.registry import ToolRegistry, build_registry


@pytest.fixture
def registry() -> ToolRegistry:
    return build_registry()


@pytest.fixture
def storage() -> InMemoryTaskStorage:
    return InMemoryTaskStorage()


@pytest.fixture
def ctx() -> RunContext:
    return RunContext(session_key="session-1")
