"""Tool executors: JSON in, JSON text out, with optional timeout."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError
from typing import Protocol

from pydantic import BaseModel, ValidationError

from agent_runtime.core.context import RunContext
from agent_runtime.core.errors import RunCancelledError, ToolExecutionError
from agent_runtime.core.models import ToolDescriptor
from agent_runtime.tools.registry import ToolSpec

logger = logging.getLogger(__name__)


class ToolExecutor(Protocol):
    @property
    def name(self) -> str: ...

    def descriptor(self) -> ToolDescriptor: ...

    def execute(self, ctx: RunContext, json_input: str) -> str: ...


class InbuiltToolExecutor:
    """Run an in-process ``ToolSpec``.

    A failure inside the tool function is returned as ``"error: <message>"``
    so the model can read it; undecodable input and timeouts raise
    ``ToolExecutionError``.
    """

    def __init__(self, spec: ToolSpec, *, timeout_s: float | None = None) -> None:
        self.spec = spec
        self.timeout_s = timeout_s

    @property
    def name(self) -> str:
        return self.spec.name

    def descriptor(self) -> ToolDescriptor:
        return self.spec.descriptor()

    def execute(self, ctx: RunContext, json_input: str) -> str:
        try:
            payload = self.spec.decode(json_input)
        except ValidationError as exc:
            raise ToolExecutionError(
                f"failed to decode input for tool {self.name}: {exc}"
            ) from exc

        started_at = time.perf_counter()
        try:
            output = self._invoke(ctx, payload)
        except (ToolExecutionError, RunCancelledError):
            raise
        except Exception as exc:  # noqa: BLE001
            logger.warning("Tool failed tool=%s reason=%s", self.name, exc)
            return f"error: {exc}"
        finally:
            logger.debug(
                "Tool finished tool=%s duration_ms=%s", self.name, _duration_ms(started_at)
            )

        if output is None:
            return ""
        return self.spec.encode(output)

    def _invoke(self, ctx: RunContext, payload: BaseModel) -> BaseModel | None:
        if not self.timeout_s:
            return self.spec.invoke(ctx, payload)

        # Leaving the pool waits for the worker, so a late tool never overlaps the next call.
        with ThreadPoolExecutor(max_workers=1) as pool:
            future = pool.submit(self.spec.invoke, ctx, payload)
            try:
                return future.result(timeout=self.timeout_s)
            except TimeoutError as exc:
                logger.warning(
                    "Tool timed out tool=%s timeout_s=%s", self.name, self.timeout_s
                )
                raise ToolExecutionError(
                    f"Tool '{self.name}' timed out after {self.timeout_s:.2f}s"
                ) from exc


class RemoteToolExecutor:
    """Placeholder for tools hosted by another service.

    The descriptor is advertised to the model like any other tool, but there
    is no transport to reach the remote service yet, so every call fails.
    """

    def __init__(self, descriptor: ToolDescriptor) -> None:
        self._descriptor = descriptor

    @property
    def name(self) -> str:
        return self._descriptor.name

    def descriptor(self) -> ToolDescriptor:
        return self._descriptor

    def execute(self, ctx: RunContext, json_input: str) -> str:
        service = self._descriptor.service_name or "unknown service"
        raise ToolExecutionError(f"remote tool {self.name} ({service}) is not supported")


def _duration_ms(started_at: float) -> float:
    return round((time.perf_counter() - started_at) * 1000.0, 2)
