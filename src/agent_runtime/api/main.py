"""FastAPI app entrypoint for agent-runtime."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from agent_runtime.config.settings import Settings, get_settings
from agent_runtime.core.errors import (
    PUBLIC_ERROR_MESSAGE,
    AgentNotFoundError,
    AgentRuntimeError,
    ConfigurationError,
    GenerationError,
    InvalidRequestError,
    MaxTurnsExceededError,
    ProtocolError,
)
from agent_runtime.core.models import ModelInput, ModelOutput, ToolDescriptor
from agent_runtime.llm import build_chat_model
from agent_runtime.llm.base import ChatModel
from agent_runtime.service.sessions import AgentService
from agent_runtime.storage.base import TaskStorage
from agent_runtime.storage.models import AgentMeta
from agent_runtime.storage.postgres import PostgresTaskStorage
from agent_runtime.tools.registry import build_registry

logger = logging.getLogger(__name__)


class CallAgentRequest(BaseModel):
    input: ModelInput
    task_id: int = Field(default=0, ge=0)


class CallAgentResponse(BaseModel):
    output: ModelOutput


def _ensure_runtime_state(
    app: FastAPI,
    *,
    settings: Settings,
    storage_override: TaskStorage | None,
    model_override: ChatModel | None,
) -> None:
    if not hasattr(app.state, "storage"):
        database_url = settings.resolved_database_url()
        if storage_override is None and not database_url:
            raise RuntimeError(
                "Missing database URL. Set AGENT_RUNTIME_DATABASE_URL "
                "or DATABASE_URL before starting the app."
            )
        app.state.storage = storage_override or PostgresTaskStorage(database_url)
        app.state.storage.migrate()

    if not hasattr(app.state, "settings"):
        app.state.settings = settings

    if not hasattr(app.state, "service"):
        app.state.service = AgentService(
            storage=app.state.storage,
            model=model_override or build_chat_model(settings),
            registry=build_registry(),
            settings=settings,
        )


def create_app(
    *,
    storage: TaskStorage | None = None,
    model: ChatModel | None = None,
    settings_override: Settings | None = None,
) -> FastAPI:
    settings = settings_override or get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        _ensure_runtime_state(
            app,
            settings=settings,
            storage_override=storage,
            model_override=model,
        )
        yield

    app_lifespan = lifespan if storage is None else None
    app = FastAPI(title=settings.app_name, lifespan=app_lifespan)

    # Injected storage means tests; build state now since TestClient may skip lifespan.
    if storage is not None:
        _ensure_runtime_state(
            app,
            settings=settings,
            storage_override=storage,
            model_override=model,
        )

    def _get_service(request: Request) -> AgentService:
        if not hasattr(request.app.state, "service"):
            _ensure_runtime_state(
                request.app,
                settings=settings,
                storage_override=storage,
                model_override=model,
            )
        return request.app.state.service

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "service": settings.app_name}

    @app.get("/tools")
    def tools() -> dict[str, list[ToolDescriptor]]:
        return {"tools": build_registry().descriptors()}

    @app.post("/agents", response_model=AgentMeta, status_code=201)
    def install_agent(payload: AgentMeta, request: Request) -> AgentMeta:
        try:
            return _get_service(request).install_agent(payload)
        except AgentRuntimeError as exc:
            raise _http_error(exc) from exc

    @app.put("/agents/{name}", response_model=AgentMeta)
    def update_agent(name: str, payload: AgentMeta, request: Request) -> AgentMeta:
        try:
            return _get_service(request).update_agent(name, payload)
        except AgentRuntimeError as exc:
            raise _http_error(exc) from exc

    @app.get("/agents/{name}", response_model=AgentMeta)
    def get_agent(name: str, request: Request) -> AgentMeta:
        try:
            return _get_service(request).get_agent(name)
        except AgentRuntimeError as exc:
            raise _http_error(exc) from exc

    @app.post("/agents/{name}/call", response_model=CallAgentResponse)
    def call_agent(name: str, payload: CallAgentRequest, request: Request) -> CallAgentResponse:
        try:
            output = _get_service(request).call_agent(
                name, payload.input, task_id=payload.task_id
            )
        except AgentRuntimeError as exc:
            raise _http_error(exc) from exc
        return CallAgentResponse(output=output)

    return app


def _http_error(exc: AgentRuntimeError) -> HTTPException:
    if isinstance(exc, InvalidRequestError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, AgentNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ConfigurationError):
        return HTTPException(status_code=422, detail=str(exc))

    detail = getattr(exc, "detail", str(exc))
    logger.warning("Agent run failed error=%s detail=%s", type(exc).__name__, detail)
    # Run failures never echo internal error text to callers.
    upstream = isinstance(exc, (ProtocolError, MaxTurnsExceededError, GenerationError))
    status_code = 502 if upstream else 500
    return HTTPException(status_code=status_code, detail=PUBLIC_ERROR_MESSAGE)


app = create_app()
