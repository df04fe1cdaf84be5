"""PostgreSQL-backed storage with automatic table migration."""

from __future__ import annotations

import json
import threading
from datetime import UTC, datetime
from typing import Any

from agent_runtime.core.models import TaskHistory, format_task_key
from agent_runtime.storage.models import AgentMeta, LatestTask


class PostgresTaskStorage:
    """Persist agent definitions, task histories and latest-task pointers."""

    def __init__(self, database_url: str) -> None:
        if not database_url:
            raise ValueError("AGENT_RUNTIME_DATABASE_URL is required")
        self.database_url = database_url
        self._lock = threading.Lock()
        self._psycopg, self._dict_row, self._json_wrapper = self._load_psycopg()

    def migrate(self) -> None:
        with self._lock, self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS agents (
                    name TEXT PRIMARY KEY,
                    meta_json JSONB NOT NULL,
                    updated_at TIMESTAMPTZ NOT NULL
                )
                """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS task_histories (
                    session_key TEXT NOT NULL,
                    agent_name TEXT NOT NULL,
                    task_key TEXT NOT NULL,
                    status TEXT NOT NULL,
                    history_json JSONB NOT NULL,
                    updated_at TIMESTAMPTZ NOT NULL,
                    PRIMARY KEY (session_key, agent_name, task_key)
                )
                """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS latest_tasks (
                    session_key TEXT NOT NULL,
                    agent_name TEXT NOT NULL,
                    latest_json JSONB NOT NULL,
                    updated_at TIMESTAMPTZ NOT NULL,
                    PRIMARY KEY (session_key, agent_name)
                )
                """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_task_histories_updated_at
                ON task_histories(updated_at DESC)
                """)
            conn.commit()

    def get_agent(self, name: str) -> AgentMeta | None:
        with self._lock, self._connect() as conn:
            row = conn.execute(
                "SELECT meta_json FROM agents WHERE name = %s",
                (name,),
            ).fetchone()
        if row is None:
            return None
        return AgentMeta.model_validate(self._parse_json(row["meta_json"]))

    def upsert_agent(self, meta: AgentMeta) -> AgentMeta:
        with self._lock, self._connect() as conn:
            conn.execute(
                """
                INSERT INTO agents (name, meta_json, updated_at)
                VALUES (%s, %s, %s)
                ON CONFLICT (name) DO UPDATE
                SET meta_json = EXCLUDED.meta_json,
                    updated_at = EXCLUDED.updated_at
                """,
                (
                    meta.name,
                    self._json_wrapper(meta.model_dump(mode="json", by_alias=True)),
                    datetime.now(tz=UTC),
                ),
            )
            conn.commit()
        return meta

    def get_task_history(
        self, session_key: str, agent_name: str, task_id: int
    ) -> TaskHistory | None:
        with self._lock, self._connect() as conn:
            row = conn.execute(
                """
                SELECT history_json
                FROM task_histories
                WHERE session_key = %s AND agent_name = %s AND task_key = %s
                """,
                (session_key, agent_name, format_task_key(task_id)),
            ).fetchone()
        if row is None:
            return None
        return TaskHistory.model_validate(self._parse_json(row["history_json"]))

    def save_task_history(
        self, session_key: str, agent_name: str, history: TaskHistory
    ) -> None:
        with self._lock, self._connect() as conn:
            conn.execute(
                """
                INSERT INTO task_histories (
                    session_key,
                    agent_name,
                    task_key,
                    status,
                    history_json,
                    updated_at
                )
                VALUES (%s, %s, %s, %s, %s, %s)
                ON CONFLICT (session_key, agent_name, task_key) DO UPDATE
                SET status = EXCLUDED.status,
                    history_json = EXCLUDED.history_json,
                    updated_at = EXCLUDED.updated_at
                """,
                (
                    session_key,
                    agent_name,
                    format_task_key(history.task_id),
                    history.status,
                    self._json_wrapper(history.to_record()),
                    datetime.now(tz=UTC),
                ),
            )
            conn.commit()

    def get_latest_task(self, session_key: str, agent_name: str) -> LatestTask | None:
        with self._lock, self._connect() as conn:
            row = conn.execute(
                """
                SELECT latest_json
                FROM latest_tasks
                WHERE session_key = %s AND agent_name = %s
                """,
                (session_key, agent_name),
            ).fetchone()
        if row is None:
            return None
        return LatestTask.model_validate(self._parse_json(row["latest_json"]))

    def save_latest_task(
        self, session_key: str, agent_name: str, latest: LatestTask
    ) -> None:
        with self._lock, self._connect() as conn:
            conn.execute(
                """
                INSERT INTO latest_tasks (session_key, agent_name, latest_json, updated_at)
                VALUES (%s, %s, %s, %s)
                ON CONFLICT (session_key, agent_name) DO UPDATE
                SET latest_json = EXCLUDED.latest_json,
                    updated_at = EXCLUDED.updated_at
                """,
                (
                    session_key,
                    agent_name,
                    self._json_wrapper(latest.model_dump(mode="json", by_alias=True)),
                    datetime.now(tz=UTC),
                ),
            )
            conn.commit()

    def _connect(self) -> Any:
        return self._psycopg.connect(self.database_url, row_factory=self._dict_row)

    @staticmethod
    def _load_psycopg() -> tuple[Any, Any, Any]:
        try:
            import psycopg
            from psycopg.rows import dict_row
            from psycopg.types.json import Json
        except ImportError as exc:  # pragma: no cover
            raise RuntimeError(
                "PostgreSQL storage requires psycopg. "
                'Install with: python -m pip install "psycopg[binary]>=3.2,<4.0"'
            ) from exc
        return psycopg, dict_row, Json

    @staticmethod
    def _parse_json(raw: Any) -> dict[str, Any]:
        parsed = json.loads(raw) if isinstance(raw, str) else raw
        if not isinstance(parsed, dict):
            raise TypeError(f"Unsupported JSON record: {type(parsed)!r}")
        return parsed
