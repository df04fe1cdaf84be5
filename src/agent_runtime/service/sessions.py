"""Agent service: stored agent definitions and per-session task rollover."""

from __future__ import annotations

import logging

from agent_runtime.config.settings import Settings
from agent_runtime.core.agent import Agent
from agent_runtime.core.context import RunContext
from agent_runtime.core.errors import (
    AgentExecutionError,
    AgentNotFoundError,
    InvalidRequestError,
)
from agent_runtime.core.models import STATUS_COMPLETED, ModelInput, ModelOutput, TaskHistory
from agent_runtime.llm.base import ChatModel
from agent_runtime.storage.base import TaskStorage
from agent_runtime.storage.models import AgentMeta, LatestTask
from agent_runtime.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class AgentService:
    """Installs agents and runs them against persisted session histories.

    Each ``(session_key, agent_name)`` pair owns a sequence of tasks. A call
    without an explicit task id resumes the in-progress task, or starts the
    next one with the last completed task attached as context.
    """

    def __init__(
        self,
        *,
        storage: TaskStorage,
        model: ChatModel,
        registry: ToolRegistry,
        settings: Settings,
    ) -> None:
        self.storage = storage
        self.model = model
        self.registry = registry
        self.settings = settings

    def install_agent(self, meta: AgentMeta) -> AgentMeta:
        # Building validates every referenced tool before anything is stored.
        self.build_agent(meta)
        logger.info(
            "Agent installed agent=%s tools=%d agents=%d",
            meta.name,
            len(meta.tools),
            len(meta.agents),
        )
        return self.storage.upsert_agent(meta)

    def update_agent(self, name: str, meta: AgentMeta) -> AgentMeta:
        if self.storage.get_agent(name) is None:
            raise AgentNotFoundError(name)
        if meta.name != name:
            raise InvalidRequestError(f"agent name mismatch: {meta.name} != {name}")
        self.build_agent(meta)
        logger.info("Agent updated agent=%s", name)
        return self.storage.upsert_agent(meta)

    def get_agent(self, name: str) -> AgentMeta:
        meta = self.storage.get_agent(name)
        if meta is None:
            raise AgentNotFoundError(name)
        return meta

    def build_agent(self, meta: AgentMeta) -> Agent:
        return Agent(
            name=meta.name,
            description=meta.description,
            context=meta.context,
            model=self.model,
            registry=self.registry,
            tools=meta.tools,
            agents=meta.agents,
            agent_handler=self._handle_agent,
            max_turns=self.settings.max_turns,
            max_corrections=self.settings.max_corrections,
            tool_timeout_s=self.settings.tool_timeout_s,
        )

    def call_agent(
        self,
        name: str,
        payload: ModelInput,
        *,
        task_id: int = 0,
        ctx: RunContext | None = None,
    ) -> ModelOutput:
        session_key = payload.session_key
        if not session_key:
            raise InvalidRequestError("session key required")

        agent = self.build_agent(self.get_agent(name))
        ctx = ctx or RunContext(session_key=session_key)
        history = self.load_task(session_key, name, task_id)
        logger.info(
            "Agent call started agent=%s session=%s task=%s",
            name,
            session_key,
            history.id,
        )

        output = agent.run(ctx, history, payload)
        self.storage.save_task_history(session_key, name, history)
        if task_id == 0:
            self._advance_latest(session_key, name, history)
        return output

    def load_task(self, session_key: str, agent_name: str, task_id: int = 0) -> TaskHistory:
        """Resolve the task a call should run against.

        An explicit ``task_id`` loads that record or starts a fresh one with
        that id. Otherwise the latest pointer decides.
        """
        if task_id:
            history = self.storage.get_task_history(session_key, agent_name, task_id)
            return history or TaskHistory.new(task_id)

        latest = self.storage.get_latest_task(session_key, agent_name) or LatestTask()
        previous: TaskHistory | None = None
        if latest.last_completed_task_id:
            previous = self.storage.get_task_history(
                session_key, agent_name, latest.last_completed_task_id
            )

        history: TaskHistory | None = None
        if latest.current_task_id:
            history = self.storage.get_task_history(
                session_key, agent_name, latest.current_task_id
            )
        if history is None:
            history = TaskHistory.new(latest.next_task_id())
        history.set_previous_task(previous)
        return history

    def _advance_latest(self, session_key: str, agent_name: str, history: TaskHistory) -> None:
        latest = self.storage.get_latest_task(session_key, agent_name) or LatestTask()
        if history.status == STATUS_COMPLETED:
            latest = LatestTask(current_task_id=0, last_completed_task_id=history.task_id)
        else:
            previous = history.previous_task
            latest = LatestTask(
                current_task_id=history.task_id,
                last_completed_task_id=(
                    previous.task_id if previous is not None else latest.last_completed_task_id
                ),
            )
        self.storage.save_latest_task(session_key, agent_name, latest)
        logger.info(
            "Latest task updated agent=%s session=%s current=%d last_completed=%d",
            agent_name,
            session_key,
            latest.current_task_id,
            latest.last_completed_task_id,
        )

    def _handle_agent(
        self,
        ctx: RunContext,
        name: str,
        history: TaskHistory,
        payload: ModelInput,
    ) -> ModelOutput:
        if ctx.depth > self.settings.max_delegation_depth:
            raise AgentExecutionError(
                f"max delegation depth {self.settings.max_delegation_depth} exceeded"
            )
        meta = self.get_agent(name)
        logger.info(
            "Delegating agent=%s parent_task=%s depth=%d",
            name,
            payload.child_session_key,
            ctx.depth,
        )
        return self.build_agent(meta).run(ctx, history, payload)
